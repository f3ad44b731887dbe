"""Conversion tool adapters."""

from .bundletool import BundletoolCli
from .interface import ERROR_MARKER, ConversionTool, ToolResult

__all__ = ["BundletoolCli", "ConversionTool", "ToolResult", "ERROR_MARKER"]
