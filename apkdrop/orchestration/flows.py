"""
Prefect flows for the APKdrop delivery pipeline.

Thin wrappers that build a DeliveryPipeline from configuration, run its
startup check and execute one ingest or retrieve invocation. Retries stay
disabled; callers decide whether to try again.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from prefect import flow, get_run_logger

from ..core.config import get_config
from ..core.logging import setup_logging
from ..models.responses import FailureResponse, IngestResponse, RetrieveResponse
from .pipeline import DeliveryPipeline


def build_pipeline() -> DeliveryPipeline:
    """Create a configured pipeline and verify the conversion tool."""
    config = get_config()
    setup_logging(config)
    pipeline = DeliveryPipeline.from_config(config)
    pipeline.startup()
    return pipeline


@flow(
    name="apkdrop-ingest",
    description="Convert an App Bundle into a stored APK set and open a session",
    version="1.0.0",
    retries=0,
)
async def ingest_bundle_flow(bundle_path: Path) -> IngestResponse | FailureResponse:
    """Ingest one bundle file.

    Args:
        bundle_path: Local .aab file; it is copied, never moved or deleted.

    Returns:
        The pipeline's ingest response.
    """
    logger = get_run_logger()
    logger.info(f"Ingesting bundle: {bundle_path}")

    response = await build_pipeline().ingest(bundle_path)

    if isinstance(response, FailureResponse):
        logger.error(f"Ingest failed [{response.kind.value}]: {response.details or response.message}")
    else:
        logger.info(f"Session created: {response.session_id}")
    return response


@flow(
    name="apkdrop-retrieve",
    description="Extract and publish the APK matching a device spec",
    version="1.0.0",
    retries=0,
)
async def retrieve_package_flow(
    session_id: str, device_spec: dict[str, Any]
) -> RetrieveResponse | FailureResponse:
    """Retrieve the APK for one device.

    Args:
        session_id: Identifier returned by the ingest flow.
        device_spec: Device spec document with ``sdkVersion`` and ``supportedAbis``.

    Returns:
        The pipeline's retrieve response.
    """
    logger = get_run_logger()
    logger.info(f"Retrieving APK for session {session_id}")

    response = await build_pipeline().retrieve(session_id, device_spec)

    if isinstance(response, FailureResponse):
        logger.error(f"Retrieve failed [{response.kind.value}]: {response.message}")
    else:
        logger.info(f"APK published: {response.download_url}")
    return response
