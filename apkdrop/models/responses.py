"""
Result and response models for the delivery pipeline.

Callers receive either a success payload or a FailureResponse carrying a
machine-readable kind and a human-readable message. Traces and internal paths
are only included when the pipeline runs in development mode.
"""

from __future__ import annotations

import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ..core.exceptions import ApkDropError, ErrorKind


class ExtractionResult(BaseModel):
    """Outcome of one extract-apks run for one device spec."""

    output_dir: Path = Field(description="Directory bundletool wrote into")
    candidates: list[str] = Field(default_factory=list, description="Files in listing order")
    selected: Path = Field(description="APK chosen by best-match selection")
    size_bytes: int = Field(default=0, ge=0)

    @property
    def selected_name(self) -> str:
        return self.selected.name


class ConversionResult(BaseModel):
    """Outcome of one build-apks run."""

    archive_path: Path
    size_bytes: int = Field(ge=0)
    diagnostics: str = ""


class IngestResponse(BaseModel):
    """Success payload of the ingest flow."""

    session_id: str
    message: str = "File processed successfully"


class RetrieveResponse(BaseModel):
    """Success payload of the retrieve flow."""

    download_url: str
    expires_at: datetime
    file_size: int = Field(ge=0)
    artifact_key: str = ""


class FailureResponse(BaseModel):
    """Structured failure returned instead of raising to callers."""

    kind: ErrorKind
    message: str
    details: Any | None = None
    trace: str | None = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        *,
        message: str | None = None,
        include_trace: bool = False,
    ) -> FailureResponse:
        """Render any exception as a failure response.

        Args:
            error: The exception that ended the flow.
            message: Optional caller-facing message; the error's own message
                then moves into ``details``.
            include_trace: Attach the formatted traceback (development only).
        """
        if isinstance(error, ApkDropError):
            kind = error.kind
            own_message = error.message
            details: Any | None = _public_details(error)
        else:
            kind = ErrorKind.INTERNAL_ERROR
            own_message = "An unexpected error occurred"
            details = None

        if message is not None:
            details = own_message if details is None else {"reason": own_message, **details}
            own_message = message

        trace = None
        if include_trace:
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            if details is None and not isinstance(error, ApkDropError):
                details = str(error)

        return cls(kind=kind, message=own_message, details=details, trace=trace)


_PUBLIC_CONTEXT_KEYS = ("required", "supported_abis", "candidates", "size_bytes", "minimum_bytes", "timeout_seconds")


def _public_details(error: ApkDropError) -> dict[str, Any] | None:
    """Pick the context entries that are safe to show outside development mode."""
    details = {k: error.context[k] for k in _PUBLIC_CONTEXT_KEYS if k in error.context}
    field_name = getattr(error, "field_name", None)
    if field_name:
        details["field"] = field_name
    return details or None
