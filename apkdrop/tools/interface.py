"""
Conversion tool interface.

The pipeline talks to bundletool only through this narrow interface so its
orchestration can be exercised with a fake that returns canned diagnostics and
output files.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

# Literal marker bundletool prints on its diagnostic stream when it fails.
ERROR_MARKER = "Error"


@dataclass(frozen=True)
class ToolResult:
    """Captured outcome of one tool process."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def exited_cleanly(self) -> bool:
        return self.returncode == 0

    @property
    def reports_error(self) -> bool:
        """Whether the diagnostic stream contains the error marker."""
        return ERROR_MARKER in self.stderr


class ConversionTool(ABC):
    """Black-box bundle conversion and APK extraction tool."""

    name: str = "conversion-tool"

    @abstractmethod
    async def build(self, bundle_path: Path, output_path: Path) -> ToolResult:
        """Convert a bundle into a universal APK set at ``output_path``."""
        ...

    @abstractmethod
    async def extract(self, archive_path: Path, output_dir: Path, spec_path: Path) -> ToolResult:
        """Extract the APKs matching the device spec document into ``output_dir``."""
        ...

    @abstractmethod
    def check_available(self) -> None:
        """Verify the tool can be launched.

        Raises:
            ToolNotFoundError: If the tool or its runtime is missing.
        """
        ...
