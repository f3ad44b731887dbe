"""
Conversion Service.

Turns an uploaded App Bundle into a universal APK set with bundletool's
build-apks mode.
"""

from __future__ import annotations

import time
from pathlib import Path

from ...core.exceptions import ConversionFailedError, InputMissingError
from ...core.logging import get_logger
from ...models.responses import ConversionResult
from ...tools.interface import ConversionTool, ToolResult

logger = get_logger(__name__)


def check_tool_result(result: ToolResult, mode: str) -> None:
    """Raise ConversionFailedError if a tool run failed.

    The exit status is the primary signal. The diagnostic stream is scanned for
    the error marker as well, since bundletool has exited 0 after printing errors.
    """
    if not result.exited_cleanly:
        raise ConversionFailedError(
            message=f"bundletool {mode} exited with status {result.returncode}",
            context={"returncode": result.returncode},
            mode=mode,
            diagnostics=result.stderr,
        )
    if result.reports_error:
        raise ConversionFailedError(
            message=f"bundletool {mode} reported an error: {result.stderr.strip()}",
            mode=mode,
            diagnostics=result.stderr,
        )


class ConversionService:
    """Drives the conversion tool to build an APK set from a bundle.

    The source bundle is never deleted here; it belongs to the caller.
    """

    def __init__(self, tool: ConversionTool) -> None:
        self.tool = tool

    async def convert(self, bundle_path: Path, archive_path: Path) -> ConversionResult:
        """Convert ``bundle_path`` into an APK set written at ``archive_path``.

        Raises:
            InputMissingError: If the bundle file does not exist.
            ConversionFailedError: If the tool fails or produces no (or an empty) archive.
        """
        if not bundle_path.is_file():
            raise InputMissingError(
                message=f"Bundle file not found: {bundle_path.name}",
                field_name="bundle",
            )

        start_time = time.perf_counter()
        logger.info("Converting bundle to APK set", bundle=bundle_path.name)

        result = await self.tool.build(bundle_path, archive_path)
        check_tool_result(result, mode="build")

        # A missing archive after a clean exit is still a failure.
        if not archive_path.is_file():
            raise ConversionFailedError(
                message="bundletool did not produce an APK set",
                mode="build",
                diagnostics=result.stderr,
            )

        size = archive_path.stat().st_size
        if size == 0:
            raise ConversionFailedError(
                message="bundletool produced an empty APK set",
                context={"size_bytes": size},
                mode="build",
                diagnostics=result.stderr,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info("Created APK set", size_bytes=size, duration_ms=round(duration_ms, 1))
        return ConversionResult(archive_path=archive_path, size_bytes=size, diagnostics=result.stderr)
