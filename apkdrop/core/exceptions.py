"""
Custom exception hierarchy for APKdrop.

All exceptions inherit from ApkDropError so the pipeline can turn any failure
into a structured response. Each concrete error carries a machine-readable kind
and context for debugging and logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    """Machine-readable failure kinds surfaced to callers."""

    INPUT_MISSING = "input_missing"
    INVALID_DEVICE_SPEC = "invalid_device_spec"
    SESSION_NOT_FOUND = "session_not_found"
    FILE_NOT_FOUND = "file_not_found"
    DOWNLOAD_FAILED = "download_failed"
    CONVERSION_FAILED = "conversion_failed"
    NO_MATCHING_PACKAGE = "no_matching_package"
    INVALID_OUTPUT = "invalid_output"
    UPLOAD_FAILED = "upload_failed"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        """HTTP-style status hint for the kind."""
        if self in (ErrorKind.INPUT_MISSING, ErrorKind.INVALID_DEVICE_SPEC):
            return 400
        if self in (ErrorKind.SESSION_NOT_FOUND, ErrorKind.FILE_NOT_FOUND):
            return 404
        return 500


@dataclass
class ApkDropError(Exception):
    """Base exception for all APKdrop errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL_ERROR

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(ApkDropError):
    """Raised when caller input fails validation."""

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class InputMissingError(ValidationError):
    """Raised when an input file the operation needs is not on disk."""

    kind: ClassVar[ErrorKind] = ErrorKind.INPUT_MISSING


@dataclass
class InvalidDeviceSpecError(ValidationError):
    """Raised when a device spec is missing required fields or is malformed."""

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_DEVICE_SPEC


@dataclass
class SessionNotFoundError(ApkDropError):
    """Raised when no session record exists for an identifier."""

    session_id: str = ""

    kind: ClassVar[ErrorKind] = ErrorKind.SESSION_NOT_FOUND


@dataclass
class StoredFileNotFoundError(ApkDropError):
    """Raised when a session points at an archive that is gone from storage."""

    key: str = ""

    kind: ClassVar[ErrorKind] = ErrorKind.FILE_NOT_FOUND


@dataclass
class DownloadFailedError(ApkDropError):
    """Raised when an archive download errors or exceeds its time budget."""

    key: str = ""
    timed_out: bool = False

    kind: ClassVar[ErrorKind] = ErrorKind.DOWNLOAD_FAILED


@dataclass
class ConversionFailedError(ApkDropError):
    """Raised when the conversion tool reports or exhibits a failure."""

    mode: str = ""
    diagnostics: str = ""

    kind: ClassVar[ErrorKind] = ErrorKind.CONVERSION_FAILED


@dataclass
class NoMatchingPackageError(ApkDropError):
    """Raised when extraction produced no APK usable by the device."""

    supported_abis: list[str] = field(default_factory=list)
    candidates: list[str] = field(default_factory=list)

    kind: ClassVar[ErrorKind] = ErrorKind.NO_MATCHING_PACKAGE


@dataclass
class InvalidOutputError(ApkDropError):
    """Raised when the selected APK is missing or implausibly small."""

    path: str = ""
    size_bytes: int = 0

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_OUTPUT


@dataclass
class UploadFailedError(ApkDropError):
    """Raised when an artifact cannot be written to the blob store."""

    key: str = ""

    kind: ClassVar[ErrorKind] = ErrorKind.UPLOAD_FAILED


@dataclass
class StorageError(ApkDropError):
    """Raised by blob and session store implementations on backend faults."""

    operation: str = ""
    key: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"[storage.{self.operation}] {base}"


@dataclass
class BlobNotFoundError(StorageError):
    """Raised when a blob key does not exist."""


@dataclass
class BlobExistsError(StorageError):
    """Raised when an upload without overwrite targets an existing key."""


@dataclass
class SessionConflictError(StorageError):
    """Raised when a session identifier is reused for a different archive."""

    session_id: str = ""


@dataclass
class PipelineError(ApkDropError):
    """Raised when a pipeline step fails for an unexpected reason."""

    step: str = ""
    session_id: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Pipeline error at step '{self.step}' (session: {self.session_id}): {base}"


@dataclass
class ToolNotFoundError(ApkDropError):
    """Raised when the external conversion tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"
