"""Test configuration for APKdrop."""

import hashlib
import json
import tempfile
from pathlib import Path

import pytest

from apkdrop.core.config import Config, PipelineConfig, StorageConfig
from apkdrop.core.exceptions import ToolNotFoundError
from apkdrop.core.tempfiles import TempResourceManager
from apkdrop.orchestration import DeliveryPipeline
from apkdrop.storage import LocalBlobStore, LocalSessionStore
from apkdrop.tools.interface import ConversionTool, ToolResult

KIB = 1024
PUBLIC_URL = "https://files.example.com/storage/v1"


class FakeBundletool(ConversionTool):
    """Conversion tool double with canned diagnostics and output files.

    build() writes an archive derived from the bundle bytes; extract() writes
    one file per entry in ``outputs`` (name -> size in bytes) whose content is
    derived from the archive bytes, so equal inputs give equal APKs.
    """

    name = "fake-bundletool"

    def __init__(
        self,
        outputs=None,
        build_result=None,
        extract_result=None,
        write_archive=True,
        available=True,
    ):
        self.outputs = {"app-universal.apk": 200 * KIB} if outputs is None else outputs
        self.build_result = build_result or ToolResult(returncode=0, stdout="build ok")
        self.extract_result = extract_result or ToolResult(returncode=0, stdout="extract ok")
        self.write_archive = write_archive
        self.available = available
        self.build_calls = []
        self.extract_calls = []

    async def build(self, bundle_path, output_path):
        self.build_calls.append((bundle_path, output_path))
        if self.write_archive:
            output_path.write_bytes(b"APKS" + bundle_path.read_bytes())
        return self.build_result

    async def extract(self, archive_path, output_dir, spec_path):
        self.extract_calls.append(
            {
                "archive": archive_path,
                "output_dir": output_dir,
                "spec": json.loads(spec_path.read_text(encoding="utf-8")),
            }
        )
        seed = archive_path.read_bytes()
        for name, size in self.outputs.items():
            block = hashlib.sha256(seed + name.encode()).digest()
            (output_dir / name).write_bytes((block * (size // len(block) + 1))[:size])
        return self.extract_result

    def check_available(self):
        if not self.available:
            raise ToolNotFoundError(
                message="bundletool jar missing",
                tool_name="bundletool",
                expected_path="/nowhere/bundletool.jar",
            )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """Configuration pointing storage and scratch space into the temp directory."""
    return Config(
        storage=StorageConfig(
            base_path=temp_dir / "storage",
            public_base_url=PUBLIC_URL,
            download_timeout_seconds=1.0,
            upload_timeout_seconds=5.0,
        ),
        pipeline=PipelineConfig(scratch_root=temp_dir / "scratch"),
    )


@pytest.fixture
def sample_bundle_bytes():
    """Bytes standing in for an uploaded .aab file.

    Returns:
        bytes: Arbitrary non-empty payload; the fake tool never parses it.
    """
    return b"PK\x03\x04" + b"bundle" * 512


@pytest.fixture
def sample_bundle(temp_dir, sample_bundle_bytes):
    """Write the sample bundle to disk.

    Returns:
        Path: The path to the created sample bundle file.
    """
    bundle_path = temp_dir / "app.aab"
    bundle_path.write_bytes(sample_bundle_bytes)
    return bundle_path


@pytest.fixture
def fake_tool():
    return FakeBundletool()


@pytest.fixture
def blob_store(config):
    return LocalBlobStore(
        config.storage.base_path,
        bucket=config.storage.bucket,
        public_base_url=config.storage.public_base_url,
    )


@pytest.fixture
def session_store(config):
    return LocalSessionStore(config.storage.base_path)


@pytest.fixture
def pipeline(config, fake_tool, blob_store, session_store):
    """Pipeline wired to the fake tool and local stores."""
    return DeliveryPipeline(
        tool=fake_tool,
        blob_store=blob_store,
        session_store=session_store,
        temp=TempResourceManager(config.pipeline.scratch_root),
        config=config,
    )


def scratch_contents(root):
    """Everything left under a scratch root."""
    if not root.exists():
        return []
    return sorted(root.iterdir())


@pytest.fixture
def tool_factory():
    """The FakeBundletool class, for tests that need custom canned output."""
    return FakeBundletool


@pytest.fixture
def leftovers(config):
    """Callable listing what remains under the configured scratch root."""
    return lambda: scratch_contents(config.pipeline.scratch_root)
