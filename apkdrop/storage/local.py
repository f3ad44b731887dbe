"""
Local filesystem blob store.

Provides a filesystem-based implementation of the blob store interface,
suitable for development and single-machine deployments. Objects live under
``<base_path>/<bucket>/<key>`` with a JSON metadata sidecar per object.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..core.exceptions import BlobExistsError, BlobNotFoundError
from ..core.logging import get_logger
from ..core.types import BlobKey
from .interface import BlobEntry, BlobStore, UploadOptions

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class LocalBlobStore(BlobStore):
    """Local filesystem blob store."""

    def __init__(self, base_path: Path, bucket: str = "appfiles", public_base_url: str = "") -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for all storage operations
            bucket: Bucket directory under the base path
            public_base_url: Prefix for public object URLs
        """
        self.bucket = bucket
        self.root = (base_path / bucket).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self._metadata_suffix = ".meta.json"

    def _get_full_path(self, key: str) -> Path:
        """Get full filesystem path for a key.

        Normalizes the key to prevent path traversal and ensures the resulting
        path is within the bucket directory.
        """
        clean_key = key.lstrip("/\\").replace("..", "").replace(":", "")
        full_path = (self.root / clean_key).resolve()

        try:
            full_path.relative_to(self.root)
        except ValueError:
            clean_key = clean_key.replace("/", "_").replace("\\", "_")
            full_path = self.root / clean_key

        return full_path

    def _get_metadata_path(self, key: str) -> Path:
        return self._get_full_path(key + self._metadata_suffix)

    async def _store_metadata(self, key: str, metadata: dict[str, Any]) -> None:
        """Write the metadata sidecar for an object."""
        metadata["_stored_at"] = datetime.now(timezone.utc).isoformat()
        metadata["_key"] = key

        async with aiofiles.open(self._get_metadata_path(key), "w", encoding="utf-8") as f:
            await f.write(json.dumps(metadata, indent=2, default=str))

    async def list(self, prefix: str = "") -> list[BlobEntry]:
        folder = self._get_full_path(prefix) if prefix.strip("/") else self.root
        if not folder.is_dir():
            return []

        entries = []
        for path in sorted(folder.iterdir()):
            if path.is_file() and not path.name.startswith(".") and not path.name.endswith(self._metadata_suffix):
                entries.append(BlobEntry(name=path.name, size_bytes=path.stat().st_size))
        return entries

    async def _read(self, key: BlobKey) -> bytes:
        full_path = self._get_full_path(key)
        if not full_path.is_file():
            raise BlobNotFoundError(message=f"Key not found: {key}", operation="download", key=key)

        async with aiofiles.open(full_path, "rb") as f:
            return await f.read()

    async def _write(self, key: BlobKey, data: bytes | Path, options: UploadOptions) -> BlobKey:
        full_path = self._get_full_path(key)
        if full_path.exists() and not options.overwrite:
            raise BlobExistsError(
                message=f"Key already exists: {key}", operation="upload", key=key
            )

        full_path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target and rename so readers never see a partial object.
        partial = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.partial")
        try:
            async with aiofiles.open(partial, "wb") as out:
                if isinstance(data, Path):
                    digest, size = await self._copy_file(data, out)
                else:
                    await out.write(data)
                    digest, size = self.compute_hash(data), len(data)
            await aiofiles.os.replace(partial, full_path)
        finally:
            if partial.exists():
                await aiofiles.os.remove(partial)

        await self._store_metadata(
            key,
            {
                "content_type": options.content_type,
                "cache_control": options.cache_control_seconds,
                "size_bytes": size,
                "hash": digest,
            },
        )
        logger.debug("Stored object", key=key, size_bytes=size)
        return key

    async def _copy_file(self, source: Path, out: Any) -> tuple[str, int]:
        """Stream a local file into an open destination, returning (sha256, size)."""
        sha256 = hashlib.sha256()
        size = 0
        async with aiofiles.open(source, "rb") as src:
            while chunk := await src.read(CHUNK_SIZE):
                sha256.update(chunk)
                size += len(chunk)
                await out.write(chunk)
        return sha256.hexdigest(), size

    async def get_metadata(self, key: BlobKey) -> dict[str, Any]:
        """Get metadata for a key, or an empty dict if there is none."""
        meta_path = self._get_metadata_path(key)
        if not meta_path.exists():
            return {}

        async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
            return json.loads(await f.read())

    def public_url(self, key: BlobKey) -> str:
        return f"{self.public_base_url}/object/public/{self.bucket}/{key.lstrip('/')}"
