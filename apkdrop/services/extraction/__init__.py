"""Device matching and extraction stage."""

from .matching import select_best_match
from .service import ExtractionService

__all__ = ["ExtractionService", "select_best_match"]
