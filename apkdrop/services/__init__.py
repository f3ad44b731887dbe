"""Services package for APKdrop."""

from .conversion import ConversionService
from .extraction import ExtractionService

__all__ = [
    "ConversionService",
    "ExtractionService",
]
