"""
Extraction Service.

Extracts the device-specific APKs from an APK set with bundletool's
extract-apks mode and selects the single APK to deliver.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import aiofiles

from ...core.exceptions import InputMissingError, InvalidOutputError, NoMatchingPackageError
from ...core.logging import get_logger
from ...core.tempfiles import TempScope
from ...core.types import TempKind
from ...models.device import DeviceSpec, parse_device_spec
from ...models.responses import ExtractionResult
from ...tools.interface import ConversionTool
from ..conversion.service import check_tool_result
from .matching import select_best_match

logger = get_logger(__name__)

DEVICE_SPEC_FILENAME = "device-spec.json"
DEFAULT_MIN_PACKAGE_BYTES = 100 * 1024


class ExtractionService:
    """Service for per-device APK extraction and best-match selection."""

    def __init__(self, tool: ConversionTool, min_package_bytes: int = DEFAULT_MIN_PACKAGE_BYTES) -> None:
        self.tool = tool
        self.min_package_bytes = min_package_bytes

    async def extract(
        self,
        archive_path: Path,
        device_spec: DeviceSpec | dict[str, Any],
        scope: TempScope,
    ) -> ExtractionResult:
        """Extract and select the APK for a device.

        Args:
            archive_path: Local APK set produced by the conversion stage.
            device_spec: Validated spec or raw document from the caller.
            scope: Temp scope that will own the extraction output directory.

        Returns:
            ExtractionResult with the candidates and the selected APK.

        Raises:
            InvalidDeviceSpecError: Before any process runs, if the spec is invalid.
            InputMissingError: If the archive is not on disk.
            ConversionFailedError: If extract-apks fails.
            NoMatchingPackageError: If no APK fits the device.
            InvalidOutputError: If the selected APK is implausibly small.
        """
        spec = parse_device_spec(device_spec)
        if not archive_path.is_file():
            raise InputMissingError(
                message=f"APK set not found: {archive_path.name}",
                field_name="archive",
            )

        start_time = time.perf_counter()
        output_dir = scope.allocate(TempKind.OUTPUT_DIR)
        spec_path = output_dir / DEVICE_SPEC_FILENAME
        async with aiofiles.open(spec_path, "w", encoding="utf-8") as f:
            await f.write(spec.to_json())

        logger.info("Extracting APK for device", sdk_version=spec.sdk_version, abis=spec.supported_abis)
        result = await self.tool.extract(archive_path, output_dir, spec_path)
        check_tool_result(result, mode="extract")

        candidates = sorted(p.name for p in output_dir.iterdir() if p.is_file() and p.name != DEVICE_SPEC_FILENAME)
        selected_name = select_best_match(candidates, spec.supported_abis)
        if selected_name is None:
            raise NoMatchingPackageError(
                message="No APK matches the device architectures",
                context={"supported_abis": spec.supported_abis, "candidates": candidates},
                supported_abis=spec.supported_abis,
                candidates=candidates,
            )

        selected = output_dir / selected_name
        size = selected.stat().st_size if selected.is_file() else 0
        if size < self.min_package_bytes:
            raise InvalidOutputError(
                message=f"Extracted APK is too small to be valid ({size} bytes)",
                context={"size_bytes": size, "minimum_bytes": self.min_package_bytes},
                path=selected_name,
                size_bytes=size,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Selected APK",
            apk=selected_name,
            size_bytes=size,
            candidates=len(candidates),
            duration_ms=round(duration_ms, 1),
        )
        return ExtractionResult(
            output_dir=output_dir,
            candidates=candidates,
            selected=selected,
            size_bytes=size,
        )
