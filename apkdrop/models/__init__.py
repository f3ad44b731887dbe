"""Data models for APKdrop."""

from .device import DeviceSpec, parse_device_spec
from .responses import (
    ConversionResult,
    ExtractionResult,
    FailureResponse,
    IngestResponse,
    RetrieveResponse,
)
from .session import Session, generate_session_id, is_valid_session_id

__all__ = [
    "DeviceSpec",
    "parse_device_spec",
    "ConversionResult",
    "ExtractionResult",
    "FailureResponse",
    "IngestResponse",
    "RetrieveResponse",
    "Session",
    "generate_session_id",
    "is_valid_session_id",
]
