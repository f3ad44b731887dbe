"""
Delivery pipeline orchestration for APKdrop.

Composes the conversion and extraction stages with the storage collaborators
into the two end-to-end flows:

* ingest: bundle -> APK set in the blob store + session record
* retrieve: session + device spec -> APK published under ``downloads/``

Each invocation runs inside one TempScope, so every scratch path it allocated is
released on every exit path. Failures come back as FailureResponse values.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Awaitable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, TypeVar

import aiofiles

from ..core.config import Config, get_config
from ..core.exceptions import (
    ApkDropError,
    ConversionFailedError,
    DownloadFailedError,
    InputMissingError,
    PipelineError,
    SessionNotFoundError,
    StorageError,
    StoredFileNotFoundError,
    UploadFailedError,
)
from ..core.logging import get_logger, invocation_context
from ..core.tempfiles import TempResourceManager, TempScope
from ..core.types import (
    APK_CONTENT_TYPE,
    ARCHIVE_CONTENT_TYPE,
    BlobKey,
    SessionId,
    Step,
    TempKind,
)
from ..models.device import DeviceSpec, parse_device_spec
from ..models.responses import FailureResponse, IngestResponse, RetrieveResponse
from ..models.session import Session, generate_session_id, is_valid_session_id
from ..services.conversion import ConversionService
from ..services.extraction import ExtractionService
from ..storage import BlobStore, LocalBlobStore, LocalSessionStore, SessionStore, UploadOptions
from ..tools import BundletoolCli, ConversionTool

logger = get_logger(__name__)

T = TypeVar("T")

BundleSource = Path | bytes | AsyncIterable[bytes]


def archive_key_for(session_id: SessionId, filename: str) -> BlobKey:
    return f"uploads/{session_id}/{filename}"


def artifact_key_for(session_id: SessionId, filename: str) -> BlobKey:
    return f"downloads/{session_id}/{filename}"


class DeliveryPipeline:
    """Ingest and retrieve flows over a conversion tool and two stores."""

    def __init__(
        self,
        tool: ConversionTool,
        blob_store: BlobStore,
        session_store: SessionStore,
        temp: TempResourceManager | None = None,
        config: Config | None = None,
    ) -> None:
        self.config = config or get_config()
        self.tool = tool
        self.blob_store = blob_store
        self.session_store = session_store
        self.temp = temp or TempResourceManager(self.config.pipeline.scratch_root)
        self.conversion = ConversionService(tool)
        self.extraction = ExtractionService(tool, self.config.pipeline.min_package_bytes)

    @classmethod
    def from_config(cls, config: Config | None = None) -> DeliveryPipeline:
        """Build a pipeline wired to bundletool and the local stores."""
        config = config or get_config()
        return cls(
            tool=BundletoolCli(config.tools),
            blob_store=LocalBlobStore(
                config.storage.base_path,
                bucket=config.storage.bucket,
                public_base_url=config.storage.public_base_url,
            ),
            session_store=LocalSessionStore(config.storage.base_path),
            temp=TempResourceManager(config.pipeline.scratch_root),
            config=config,
        )

    def startup(self) -> None:
        """Check the pipeline's external dependencies before serving requests.

        Raises:
            ToolNotFoundError: If the conversion tool cannot be launched.
        """
        self.tool.check_available()
        self.temp.scratch_root.mkdir(parents=True, exist_ok=True)
        logger.info("Pipeline ready", tool=self.tool.name, scratch_root=str(self.temp.scratch_root))

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest(self, source: BundleSource) -> IngestResponse | FailureResponse:
        """Convert an inbound bundle and record a session for it.

        Args:
            source: Path to a bundle file (not deleted), raw bytes, or an
                async stream of byte chunks.

        Returns:
            IngestResponse with the new session identifier, or a
            FailureResponse with the underlying message in ``details``.
        """
        session_id = generate_session_id()
        with invocation_context(flow="ingest", session_id=session_id):
            try:
                async with self.temp.scope() as scope:
                    return await self._ingest(session_id, source, scope)
            except Exception as e:
                self._log_failure("Ingest failed", e)
                return FailureResponse.from_error(
                    e, message="Processing failed", include_trace=self.config.debug
                )

    async def _ingest(self, session_id: SessionId, source: BundleSource, scope: TempScope) -> IngestResponse:
        logger.info("Ingest started")

        inbound = scope.allocate(TempKind.INBOUND_BUNDLE)
        await self._materialize(source, inbound)

        archive = scope.allocate(TempKind.ARCHIVE)
        await self._call(
            Step.CONVERT,
            self.conversion.convert(inbound, archive),
            ConversionFailedError,
            mode="build",
        )

        archive_key = archive_key_for(session_id, self.config.pipeline.archive_filename)
        await self._call(
            Step.STORE_ARCHIVE,
            self.blob_store.upload(
                archive_key,
                archive,
                UploadOptions(content_type=ARCHIVE_CONTENT_TYPE),
                timeout=self.config.storage.upload_timeout_seconds,
            ),
            UploadFailedError,
            key=archive_key,
        )

        # Last step: no session exists unless its archive is stored.
        await self._call(
            Step.CREATE_SESSION,
            self.session_store.insert(Session.new(archive_key, session_id)),
            PipelineError,
            step=Step.CREATE_SESSION.value,
            session_id=session_id,
        )

        logger.info("Ingest completed", archive_key=archive_key)
        return IngestResponse(session_id=session_id)

    async def _materialize(self, source: BundleSource, destination: Path) -> None:
        """Write the inbound bundle to its scratch path."""
        if isinstance(source, Path):
            if not source.is_file():
                raise InputMissingError(message="No bundle file uploaded", field_name="file")
            await self._call(
                Step.MATERIALIZE,
                _copy_file(source, destination),
                PipelineError,
                step=Step.MATERIALIZE.value,
            )
            return

        if isinstance(source, (bytes, bytearray)):
            if not source:
                raise InputMissingError(message="No bundle file uploaded", field_name="file")
            await self._call(
                Step.MATERIALIZE,
                _write_bytes(destination, bytes(source)),
                PipelineError,
                step=Step.MATERIALIZE.value,
            )
            return

        await self._call(
            Step.MATERIALIZE,
            _write_stream(source, destination),
            PipelineError,
            step=Step.MATERIALIZE.value,
        )
        if destination.stat().st_size == 0:
            raise InputMissingError(message="No bundle file uploaded", field_name="file")

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    async def retrieve(
        self, session_id: SessionId, device_spec: DeviceSpec | dict[str, Any]
    ) -> RetrieveResponse | FailureResponse:
        """Extract, publish and link the APK that fits a device.

        Args:
            session_id: Identifier returned by ``ingest``.
            device_spec: Device spec document (``sdkVersion``, ``supportedAbis``, ...).

        Returns:
            RetrieveResponse with the public download URL, or a FailureResponse.
        """
        with invocation_context(flow="retrieve", session_id=session_id):
            try:
                async with self.temp.scope() as scope:
                    return await self._retrieve(session_id, device_spec, scope)
            except Exception as e:
                self._log_failure("Retrieve failed", e)
                return FailureResponse.from_error(e, include_trace=self.config.debug)

    async def _retrieve(
        self, session_id: SessionId, device_spec: DeviceSpec | dict[str, Any], scope: TempScope
    ) -> RetrieveResponse:
        spec = parse_device_spec(device_spec)
        if not is_valid_session_id(session_id):
            raise SessionNotFoundError(
                message="Session not found; upload the bundle again", session_id=session_id
            )
        logger.info("Retrieve started", abis=spec.supported_abis)

        session = await self._call(
            Step.LOOKUP_SESSION,
            self.session_store.get(session_id),
            PipelineError,
            step=Step.LOOKUP_SESSION.value,
            session_id=session_id,
        )
        if session is None or session.session_id != session_id:
            raise SessionNotFoundError(
                message="Session not found; upload the bundle again", session_id=session_id
            )

        archive_key = session.archive_key
        present = await self._call(
            Step.VERIFY_ARCHIVE,
            self.blob_store.contains(archive_key),
            PipelineError,
            step=Step.VERIFY_ARCHIVE.value,
            session_id=session_id,
        )
        if not present:
            raise StoredFileNotFoundError(message="Archive is missing from storage", key=archive_key)

        data = await self._download(archive_key)

        archive_path = scope.allocate(TempKind.ARCHIVE)
        await self._call(
            Step.PERSIST_ARCHIVE,
            _write_bytes(archive_path, data),
            PipelineError,
            step=Step.PERSIST_ARCHIVE.value,
            session_id=session_id,
        )

        extraction = await self._call(
            Step.EXTRACT_PACKAGE,
            self.extraction.extract(archive_path, spec, scope),
            ConversionFailedError,
            mode="extract",
        )
        artifact_key = artifact_key_for(session_id, extraction.selected.name)
        logger.info("Uploading extracted APK", artifact_key=artifact_key)
        await self._call(
            Step.UPLOAD_PACKAGE,
            self.blob_store.upload(
                artifact_key,
                extraction.selected,
                UploadOptions(
                    content_type=APK_CONTENT_TYPE,
                    overwrite=True,
                    cache_control_seconds=self.config.storage.cache_control_seconds,
                ),
                timeout=self.config.storage.upload_timeout_seconds,
            ),
            UploadFailedError,
            key=artifact_key,
        )

        response = RetrieveResponse(
            download_url=self.blob_store.public_url(artifact_key),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=self.config.pipeline.link_ttl_hours),
            file_size=extraction.size_bytes,
            artifact_key=artifact_key,
        )
        logger.info("Retrieve completed", download_url=response.download_url, file_size=response.file_size)
        return response

    async def _download(self, key: BlobKey) -> bytes:
        timeout = self.config.storage.download_timeout_seconds
        try:
            return await self.blob_store.download(key, timeout=timeout)
        except TimeoutError as e:
            raise DownloadFailedError(
                message=f"Archive download did not finish within {timeout:g}s",
                context={"step": Step.DOWNLOAD_ARCHIVE.value, "timeout_seconds": timeout},
                cause=e,
                key=key,
                timed_out=True,
            ) from e
        except Exception as e:
            raise DownloadFailedError(
                message=f"Failed to download archive from storage: {_reason(e)}",
                context={"step": Step.DOWNLOAD_ARCHIVE.value},
                cause=e,
                key=key,
            ) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _call(
        step: Step, awaitable: Awaitable[T], error_cls: type[ApkDropError], /, **fields: Any
    ) -> T:
        """Await a collaborator call, wrapping its faults with the step name.

        Pipeline errors raised by the call propagate unchanged; storage faults,
        timeouts and unexpected exceptions become ``error_cls``.
        """
        try:
            return await awaitable
        except StorageError as e:
            raise error_cls(
                message=f"{step.value} failed: {e.message}",
                context={"step": step.value},
                cause=e,
                **fields,
            ) from e
        except ApkDropError:
            raise
        except Exception as e:
            raise error_cls(
                message=f"{step.value} failed: {_reason(e)}",
                context={"step": step.value},
                cause=e,
                **fields,
            ) from e

    def _log_failure(self, event: str, error: Exception) -> None:
        if isinstance(error, ApkDropError):
            logger.error(event, kind=error.kind.value, error=str(error))
        else:
            logger.exception(event, error=str(error))


def _reason(error: Exception) -> str:
    if isinstance(error, ApkDropError):
        return error.message
    return str(error) or type(error).__name__


async def _copy_file(source: Path, destination: Path) -> None:
    async with aiofiles.open(source, "rb") as src, aiofiles.open(destination, "wb") as dst:
        while chunk := await src.read(1024 * 1024):
            await dst.write(chunk)


async def _write_stream(stream: AsyncIterable[bytes], destination: Path) -> None:
    async with aiofiles.open(destination, "wb") as f:
        async for chunk in stream:
            await f.write(chunk)


async def _write_bytes(destination: Path, data: bytes) -> None:
    async with aiofiles.open(destination, "wb") as f:
        await f.write(data)

