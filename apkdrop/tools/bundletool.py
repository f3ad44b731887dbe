"""
bundletool adapter.

Runs ``bundletool build-apks`` and ``bundletool extract-apks`` as fresh Java
processes. The combined stdout/stderr of each run is capped; a process that
writes past its ceiling is killed and reported as a conversion failure.
"""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from pathlib import Path

from ..core.config import ToolsConfig
from ..core.exceptions import ConversionFailedError, ToolNotFoundError
from ..core.logging import get_logger
from .interface import ConversionTool, ToolResult

logger = get_logger(__name__)

READ_CHUNK = 64 * 1024


class OutputLimitExceeded(Exception):
    """Raised internally when a process exceeds its output ceiling."""


class BundletoolCli(ConversionTool):
    """bundletool invoked through ``java -jar``."""

    name = "bundletool"

    def __init__(self, config: ToolsConfig) -> None:
        self.java_path = config.java_path
        self.jar_path = config.bundletool_jar
        self.build_limit = config.build_output_limit_bytes
        self.extract_limit = config.extract_output_limit_bytes

    def check_available(self) -> None:
        if not self.jar_path.is_file():
            raise ToolNotFoundError(
                message=f"bundletool jar missing: {self.jar_path}",
                tool_name="bundletool",
                expected_path=str(self.jar_path),
                install_hint="Download bundletool-all.jar from github.com/google/bundletool/releases",
            )
        if shutil.which(self.java_path) is None:
            raise ToolNotFoundError(
                message=f"Java launcher not found: {self.java_path}",
                tool_name="java",
                expected_path=self.java_path,
                install_hint="Install a Java runtime (11+) and add it to PATH",
            )

    def _command(self, subcommand: str, *args: str) -> list[str]:
        return [self.java_path, "-jar", str(self.jar_path), subcommand, *args]

    async def build(self, bundle_path: Path, output_path: Path) -> ToolResult:
        cmd = self._command(
            "build-apks",
            f"--bundle={bundle_path}",
            f"--output={output_path}",
            "--mode=universal",
            "--overwrite",
        )
        return await self._run_command(cmd, limit=self.build_limit, mode="build")

    async def extract(self, archive_path: Path, output_dir: Path, spec_path: Path) -> ToolResult:
        cmd = self._command(
            "extract-apks",
            f"--apks={archive_path}",
            f"--output-dir={output_dir}",
            f"--device-spec={spec_path}",
        )
        return await self._run_command(cmd, limit=self.extract_limit, mode="extract")

    async def _run_command(self, cmd: list[str], limit: int, mode: str) -> ToolResult:
        """Run a tool process, collecting its output up to ``limit`` bytes combined."""
        logger.info("Running command", command=" ".join(cmd), mode=mode)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConversionFailedError(
                message=f"Could not start {self.name}: {e}",
                context={"command": cmd[0]},
                cause=e,
                mode=mode,
            ) from e

        budget = [limit]
        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []

        async def read_stream(stream: asyncio.StreamReader, chunks: list[bytes]) -> None:
            while chunk := await stream.read(READ_CHUNK):
                budget[0] -= len(chunk)
                if budget[0] < 0:
                    raise OutputLimitExceeded()
                chunks.append(chunk)

        try:
            await asyncio.gather(
                read_stream(process.stdout, stdout_chunks),  # type: ignore[arg-type]
                read_stream(process.stderr, stderr_chunks),  # type: ignore[arg-type]
            )
        except OutputLimitExceeded:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            logger.error("Tool output exceeded ceiling", mode=mode, limit_bytes=limit)
            raise ConversionFailedError(
                message=f"{self.name} {mode} output exceeded {limit} bytes",
                context={"limit_bytes": limit},
                mode=mode,
            )

        returncode = await process.wait()
        result = ToolResult(
            returncode=returncode,
            stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        )
        logger.info(
            "Command completed",
            mode=mode,
            returncode=returncode,
            stdout_bytes=sum(map(len, stdout_chunks)),
            stderr_bytes=sum(map(len, stderr_chunks)),
        )
        return result
