"""
Storage collaborator interfaces.

Defines the blob store used for bundles, archives and published APKs, and the
session store that maps session identifiers to archive keys. Concrete backends
implement the protected primitives; time budgets are enforced here so every
backend gets the same bounded-wait behavior.
"""

from __future__ import annotations

import asyncio
import hashlib
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field

from ..core.types import BlobKey, SessionId
from ..models.session import Session

T = TypeVar("T")


class BlobEntry(BaseModel):
    """One object returned by a prefix listing."""

    name: str = Field(description="Object name relative to the listed prefix")
    size_bytes: int = Field(default=0, ge=0)


class UploadOptions(BaseModel):
    """Options controlling an upload."""

    content_type: str = "application/octet-stream"
    overwrite: bool = False
    cache_control_seconds: int | None = None


async def bounded_wait(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await with a time budget, abandoning the operation on expiry.

    The pending task is cancelled but not awaited, so a backend that ignores
    cancellation cannot hold the caller past the budget.

    Raises:
        TimeoutError: If the awaitable does not finish within ``timeout`` seconds.
    """
    if timeout is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()

    task.cancel()
    # Retrieve the eventual outcome so it is never reported as unhandled.
    task.add_done_callback(lambda t: t.cancelled() or t.exception())
    raise TimeoutError(f"Operation did not complete within {timeout:g}s")


class BlobStore(ABC):
    """Abstract blob store interface."""

    async def download(self, key: BlobKey, timeout: float | None = None) -> bytes:
        """Download an object, bounded by ``timeout`` seconds.

        Raises:
            BlobNotFoundError: If the key does not exist.
            TimeoutError: If the download exceeds its budget.
        """
        return await bounded_wait(self._read(key), timeout)

    async def upload(
        self,
        key: BlobKey,
        data: bytes | Path,
        options: UploadOptions | None = None,
        timeout: float | None = None,
    ) -> BlobKey:
        """Upload raw bytes or a local file under ``key``.

        Overwriting an existing key is only allowed with ``options.overwrite``
        and is idempotent.

        Raises:
            BlobExistsError: If the key exists and overwrite is disabled.
            TimeoutError: If the upload exceeds its budget.
        """
        return await bounded_wait(self._write(key, data, options or UploadOptions()), timeout)

    @abstractmethod
    async def list(self, prefix: str = "") -> list[BlobEntry]:
        """List the objects directly under a prefix.

        Args:
            prefix: Folder-like key prefix, e.g. ``uploads/<session>``.

        Returns:
            Entries for the objects in that folder; empty if it does not exist.
        """
        ...

    @abstractmethod
    async def _read(self, key: BlobKey) -> bytes:
        ...

    @abstractmethod
    async def _write(self, key: BlobKey, data: bytes | Path, options: UploadOptions) -> BlobKey:
        ...

    @abstractmethod
    def public_url(self, key: BlobKey) -> str:
        """Publicly resolvable URL for a stored object."""
        ...

    async def contains(self, key: BlobKey) -> bool:
        """Check existence by listing the containing prefix."""
        prefix, _, name = key.rpartition("/")
        entries = await self.list(prefix)
        return any(entry.name == name for entry in entries)

    @staticmethod
    def compute_hash(data: bytes) -> str:
        """Compute SHA-256 hash of data."""
        return hashlib.sha256(data).hexdigest()


class SessionStore(ABC):
    """Abstract session record store."""

    @abstractmethod
    async def get(self, session_id: SessionId) -> Session | None:
        """Return the session for an identifier, or None if there is none."""
        ...

    @abstractmethod
    async def insert(self, session: Session) -> None:
        """Persist a new session.

        Re-inserting an identical record is a no-op. Reusing an identifier for
        a different archive raises SessionConflictError; existing records are
        never overwritten.
        """
        ...
