"""Orchestration module for APKdrop.

The Prefect flows live in ``apkdrop.orchestration.flows``.
"""

from .pipeline import BundleSource, DeliveryPipeline, archive_key_for, artifact_key_for

__all__ = [
    "BundleSource",
    "DeliveryPipeline",
    "archive_key_for",
    "artifact_key_for",
]
