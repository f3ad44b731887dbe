"""
Local session store.

Keeps one JSON record per session under ``<base_path>/sessions``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiofiles
import aiofiles.os

from ..core.exceptions import SessionConflictError, StorageError
from ..core.logging import get_logger
from ..core.types import SessionId
from ..models.session import Session, is_valid_session_id
from .interface import SessionStore

logger = get_logger(__name__)


class LocalSessionStore(SessionStore):
    """Filesystem-backed session records."""

    def __init__(self, base_path: Path) -> None:
        self.root = (base_path / "sessions").resolve()
        self._insert_lock = asyncio.Lock()

    def _record_path(self, session_id: SessionId) -> Path:
        if not is_valid_session_id(session_id):
            raise StorageError(
                message=f"Invalid session identifier: {session_id!r}",
                operation="session",
                key=session_id,
            )
        return self.root / f"{session_id}.json"

    async def get(self, session_id: SessionId) -> Session | None:
        # Malformed identifiers name no record.
        if not is_valid_session_id(session_id):
            return None

        path = self._record_path(session_id)
        if not path.exists():
            return None

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        try:
            session = Session.model_validate_json(content)
        except ValueError as e:
            raise StorageError(
                message=f"Corrupt session record: {session_id}",
                operation="get",
                key=str(path.name),
                cause=e,
            ) from e

        if session.session_id != session_id:
            logger.warning(
                "Session record identifier mismatch",
                requested=session_id,
                recorded=session.session_id,
            )
            return None
        return session

    async def insert(self, session: Session) -> None:
        path = self._record_path(session.session_id)
        async with self._insert_lock:
            existing = await self.get(session.session_id)
            if existing is not None:
                if existing.archive_key == session.archive_key:
                    logger.debug("Session already recorded", session_id=session.session_id)
                    return
                raise SessionConflictError(
                    message=f"Session identifier already in use: {session.session_id}",
                    operation="insert",
                    key=path.name,
                    session_id=session.session_id,
                )

            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(session.model_dump_json(indent=2))
