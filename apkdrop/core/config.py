"""
Configuration management for APKdrop.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the conversion tool, storage collaborators and the
delivery pipeline.
"""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

MIB = 1024 * 1024


class ToolsConfig(BaseModel):
    """External conversion tool configuration."""

    java_path: str = Field(default="java", description="Java launcher used to run bundletool")
    bundletool_jar: Path = Field(
        default=Path("./bundletool-all-1.18.1.jar"),
        description="Path to the bundletool-all jar",
    )
    build_output_limit_bytes: int = Field(
        default=50 * MIB, ge=1024, description="Combined stdout/stderr ceiling for build-apks"
    )
    extract_output_limit_bytes: int = Field(
        default=100 * MIB, ge=1024, description="Combined stdout/stderr ceiling for extract-apks"
    )


class StorageConfig(BaseModel):
    """Blob and session store configuration."""

    backend: Literal["local"] = Field(default="local", description="Storage backend")
    base_path: Path = Field(default=Path("./storage"), description="Base path for local storage")
    bucket: str = Field(default="appfiles", description="Bucket holding archives and downloads")
    public_base_url: str = Field(
        default="http://localhost:54321/storage/v1",
        description="Base URL used to build public artifact links",
    )
    download_timeout_seconds: float = Field(default=30.0, gt=0, description="Archive download budget")
    upload_timeout_seconds: float = Field(default=120.0, gt=0, description="Artifact upload budget")
    cache_control_seconds: int = Field(default=3600, ge=0, description="Cache hint for published APKs")


class PipelineConfig(BaseModel):
    """Delivery pipeline configuration."""

    scratch_root: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "apkdrop",
        description="Root directory for per-invocation temp resources",
    )
    min_package_bytes: int = Field(
        default=100 * 1024, ge=0, description="Smallest APK accepted as valid extraction output"
    )
    link_ttl_hours: int = Field(default=24, ge=1, description="Advisory lifetime of download links")
    archive_filename: str = Field(default="output.apks", description="Archive name under uploads/{session}/")


class Config(BaseModel):
    """Root configuration for APKdrop."""

    project_name: str = Field(default="APKdrop", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["production", "development"] = Field(
        default="production", description="Development mode exposes traces in failure responses"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    model_config = {"extra": "ignore"}

    @property
    def debug(self) -> bool:
        """Whether diagnostic details may be exposed to callers."""
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        pipeline = PipelineConfig()
        if scratch_root := os.environ.get("APKDROP_SCRATCH_ROOT"):
            pipeline = PipelineConfig(scratch_root=Path(scratch_root))

        return cls(
            log_level=os.environ.get("APKDROP_LOG_LEVEL", "INFO"),  # type: ignore
            environment=os.environ.get("APKDROP_ENV", "production"),  # type: ignore
            tools=ToolsConfig(
                java_path=os.environ.get("APKDROP_JAVA", "java"),
                bundletool_jar=Path(
                    os.environ.get("APKDROP_BUNDLETOOL_JAR", "./bundletool-all-1.18.1.jar")
                ),
            ),
            storage=StorageConfig(
                base_path=Path(os.environ.get("APKDROP_STORAGE_PATH", "./storage")),
                bucket=os.environ.get("APKDROP_BUCKET", "appfiles"),
                public_base_url=os.environ.get(
                    "APKDROP_PUBLIC_URL", "http://localhost:54321/storage/v1"
                ),
                download_timeout_seconds=float(os.environ.get("APKDROP_DOWNLOAD_TIMEOUT", "30")),
                upload_timeout_seconds=float(os.environ.get("APKDROP_UPLOAD_TIMEOUT", "120")),
            ),
            pipeline=pipeline,
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
