"""
Core type definitions for APKdrop.

Type aliases and small value types shared between the pipeline stages and the
storage collaborators.
"""

from __future__ import annotations

from enum import Enum

# Type aliases
SessionId = str
BlobKey = str  # path-like key inside the bucket

APK_SUFFIX = ".apk"
APK_CONTENT_TYPE = "application/vnd.android.package-archive"
ARCHIVE_CONTENT_TYPE = "application/octet-stream"


class TempKind(str, Enum):
    """Kinds of scratch resources a pipeline invocation allocates."""

    INBOUND_BUNDLE = "inbound"
    ARCHIVE = "archive"
    OUTPUT_DIR = "output"

    @property
    def suffix(self) -> str:
        """File suffix for the resource, empty for directories."""
        return {
            TempKind.INBOUND_BUNDLE: ".aab",
            TempKind.ARCHIVE: ".apks",
            TempKind.OUTPUT_DIR: "",
        }[self]

    @property
    def is_directory(self) -> bool:
        return self is TempKind.OUTPUT_DIR


class Step(str, Enum):
    """Named steps of the ingest and retrieve flows, used for logs and error wrapping."""

    MATERIALIZE = "materialize_bundle"
    CONVERT = "convert_bundle"
    STORE_ARCHIVE = "store_archive"
    CREATE_SESSION = "create_session"
    LOOKUP_SESSION = "lookup_session"
    VERIFY_ARCHIVE = "verify_archive"
    DOWNLOAD_ARCHIVE = "download_archive"
    PERSIST_ARCHIVE = "persist_archive"
    EXTRACT_PACKAGE = "extract_package"
    UPLOAD_PACKAGE = "upload_package"


def format_file_size(size_bytes: int) -> str:
    """Render a byte count as a human-readable size, e.g. ``1.50 MB``."""
    units = ["B", "KB", "MB", "GB"]
    size = float(size_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {units[unit_index]}"
