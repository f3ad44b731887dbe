"""Core infrastructure components for APKdrop."""

from .config import Config, get_config
from .exceptions import (
    ApkDropError,
    ErrorKind,
    PipelineError,
    StorageError,
    ValidationError,
)
from .logging import bind_context, get_logger, invocation_context, setup_logging
from .tempfiles import TempResourceManager, TempScope
from .types import BlobKey, SessionId, Step, TempKind, format_file_size

__all__ = [
    "Config",
    "get_config",
    "ApkDropError",
    "ErrorKind",
    "PipelineError",
    "StorageError",
    "ValidationError",
    "bind_context",
    "get_logger",
    "invocation_context",
    "setup_logging",
    "TempResourceManager",
    "TempScope",
    "BlobKey",
    "SessionId",
    "Step",
    "TempKind",
    "format_file_size",
]
