"""
APKdrop CLI.

Command-line interface for converting App Bundles and retrieving device APKs.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import get_config
from .core.exceptions import ToolNotFoundError
from .core.logging import setup_logging
from .core.types import format_file_size
from .models.responses import FailureResponse

app = typer.Typer(
    name="apkdrop",
    help="Convert Android App Bundles and deliver the APK matching a device",
    add_completion=False,
)

console = Console()

T = TypeVar("T")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"APKdrop v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """APKdrop: App Bundle to device APK delivery."""
    pass


def _print_failure(response: FailureResponse) -> None:
    console.print(f"\n[bold red]✗ {response.message}[/bold red] [dim]({response.kind.value})[/dim]")
    if response.details:
        console.print(f"Details: {response.details}")
    if response.trace:
        console.print(response.trace, style="dim")


def _run_with_spinner(description: str, coro: Coroutine[Any, Any, T]) -> T:
    async def run_async() -> T:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            return await coro

    return asyncio.run(run_async())


@app.command()
def check() -> None:
    """Verify bundletool and Java are available."""
    from .orchestration import DeliveryPipeline

    config = get_config()
    setup_logging(config)
    try:
        DeliveryPipeline.from_config(config).startup()
    except ToolNotFoundError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(1)

    console.print("[bold green]✓ bundletool is available[/bold green]")


@app.command()
def ingest(
    bundle_path: Path = typer.Argument(
        ...,
        help="Path to the .aab file to convert",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Convert an App Bundle into an APK set and open a session."""
    from .orchestration.flows import ingest_bundle_flow

    console.print(Panel.fit(
        "[bold blue]APKdrop[/bold blue]\n"
        "App Bundle → APK set → session",
        border_style="blue",
    ))
    console.print(f"\n[bold]Bundle:[/bold] {bundle_path} ({format_file_size(bundle_path.stat().st_size)})")

    response = _run_with_spinner("Converting bundle...", ingest_bundle_flow(bundle_path))

    if isinstance(response, FailureResponse):
        _print_failure(response)
        raise typer.Exit(1)

    console.print("\n[bold green]✓ Bundle processed successfully![/bold green]")
    console.print(f"[bold]Session ID:[/bold] {response.session_id}")


@app.command()
def retrieve(
    session_id: str = typer.Argument(..., help="Session identifier returned by ingest"),
    spec_file: Optional[Path] = typer.Option(
        None,
        "--spec",
        "-s",
        help="Device spec JSON file (sdkVersion, supportedAbis, ...)",
        exists=True,
        dir_okay=False,
    ),
    sdk_version: Optional[str] = typer.Option(None, "--sdk", help="Device SDK version"),
    abis: list[str] = typer.Option(
        [],
        "--abi",
        "-a",
        help="Supported ABI, most preferred first (repeatable)",
    ),
) -> None:
    """Extract and publish the APK that matches a device."""
    from .orchestration.flows import retrieve_package_flow

    if spec_file is not None:
        device_spec = json.loads(spec_file.read_text(encoding="utf-8"))
    else:
        device_spec = {"sdkVersion": sdk_version, "supportedAbis": abis}

    response = _run_with_spinner(
        "Extracting APK...", retrieve_package_flow(session_id, device_spec)
    )

    if isinstance(response, FailureResponse):
        _print_failure(response)
        raise typer.Exit(1)

    table = Table(title="Delivered APK")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Download URL", response.download_url)
    table.add_row("Size", format_file_size(response.file_size))
    table.add_row("Expires", response.expires_at.isoformat())
    console.print(table)


@app.command()
def config() -> None:
    """Show the current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Environment", cfg.environment)
    table.add_row("Java", cfg.tools.java_path)
    table.add_row("bundletool jar", str(cfg.tools.bundletool_jar))
    table.add_row("Storage Path", str(cfg.storage.base_path))
    table.add_row("Bucket", cfg.storage.bucket)
    table.add_row("Public URL", cfg.storage.public_base_url)
    table.add_row("Download Timeout", f"{cfg.storage.download_timeout_seconds:g}s")
    table.add_row("Upload Timeout", f"{cfg.storage.upload_timeout_seconds:g}s")
    table.add_row("Scratch Root", str(cfg.pipeline.scratch_root))
    table.add_row("Min APK Size", format_file_size(cfg.pipeline.min_package_bytes))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  APKDROP_BUNDLETOOL_JAR, APKDROP_JAVA, APKDROP_STORAGE_PATH")
    console.print("  APKDROP_PUBLIC_URL, APKDROP_SCRATCH_ROOT, APKDROP_ENV")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
