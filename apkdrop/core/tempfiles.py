"""
Scratch resource management.

Every pipeline invocation allocates its inbound bundle, archive copy and
extraction output directory through a TempScope. The scope releases all of
them when the invocation leaves its ``async with`` block, whichever exit path
is taken. Deletion failures are logged and never raised.
"""

from __future__ import annotations

import asyncio
import shutil
import uuid
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

import aiofiles.os

from .logging import get_logger
from .types import TempKind

logger = get_logger(__name__)


class TempResourceManager:
    """Allocates uniquely named paths under a shared scratch root.

    Holds no state besides the root. Isolation between concurrent invocations
    comes from the fresh token in every allocated name, so no locking is needed.
    """

    def __init__(self, scratch_root: Path) -> None:
        self.scratch_root = scratch_root

    def allocate(self, kind: TempKind) -> Path:
        """Return a fresh path for a resource of the given kind.

        Directories are created; file paths are only reserved by name.
        """
        self.scratch_root.mkdir(parents=True, exist_ok=True)
        path = self.scratch_root / f"{kind.value}_{uuid.uuid4().hex}{kind.suffix}"
        if kind.is_directory:
            path.mkdir()
        return path

    async def release_all(self, paths: Iterable[Path]) -> list[tuple[Path, Exception]]:
        """Delete every given path concurrently.

        Args:
            paths: Files or directories to remove. Paths that no longer exist
                count as released.

        Returns:
            The (path, error) pairs for deletions that failed.
        """
        targets = list(dict.fromkeys(paths))
        results = await asyncio.gather(
            *(self._remove(path) for path in targets), return_exceptions=True
        )

        failures: list[tuple[Path, Exception]] = []
        for path, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("Failed to delete temp resource", path=str(path), error=str(result))
                failures.append((path, result))
        return failures

    @staticmethod
    async def _remove(path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                await asyncio.to_thread(shutil.rmtree, path)
            else:
                await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Temp resource already gone", path=str(path))

    def scope(self) -> TempScope:
        """Open a scope that owns everything allocated through it."""
        return TempScope(self)


class TempScope:
    """Collects the temp paths of one invocation and releases them on exit."""

    def __init__(self, manager: TempResourceManager) -> None:
        self.manager = manager
        self.allocated: list[Path] = []
        self.failures: list[tuple[Path, Exception]] = []

    def allocate(self, kind: TempKind) -> Path:
        path = self.manager.allocate(kind)
        self.allocated.append(path)
        return path

    async def release(self) -> None:
        """Release everything allocated so far. Safe to call more than once."""
        pending, self.allocated = self.allocated, []
        self.failures.extend(await self.manager.release_all(pending))

    async def __aenter__(self) -> TempScope:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
