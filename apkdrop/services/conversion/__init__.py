"""Bundle conversion stage."""

from .service import ConversionService, check_tool_result

__all__ = ["ConversionService", "check_tool_result"]
