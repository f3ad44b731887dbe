"""Session records linking an identifier to its converted archive."""

from __future__ import annotations

import re
import time
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..core.types import BlobKey, SessionId

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def generate_session_id() -> SessionId:
    """Create a session identifier: millisecond timestamp plus a uuid4 suffix."""
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex}"


def is_valid_session_id(session_id: str) -> bool:
    """True if ``session_id`` uses only the characters identifiers are built from.

    Identifiers with path separators, dots or other punctuation can never name a
    stored session and are never rewritten into one.
    """
    return bool(session_id) and _SESSION_ID_PATTERN.fullmatch(session_id) is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """Immutable pointer from a session identifier to a stored archive."""

    model_config = ConfigDict(frozen=True)

    session_id: SessionId = Field(description="Opaque session identifier")
    archive_key: BlobKey = Field(description="Blob store key of the converted archive")
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def new(cls, archive_key: BlobKey, session_id: SessionId | None = None) -> Session:
        return cls(session_id=session_id or generate_session_id(), archive_key=archive_key)
