"""Unit tests for storage collaborators."""

import asyncio
import time

import pytest

from apkdrop.core.exceptions import (
    BlobExistsError,
    BlobNotFoundError,
    SessionConflictError,
    StorageError,
)
from apkdrop.models import Session
from apkdrop.storage import LocalBlobStore, LocalSessionStore, UploadOptions, bounded_wait


@pytest.mark.asyncio
class TestLocalBlobStore:
    """Tests for the local filesystem blob store."""

    async def test_upload_and_download_bytes(self, temp_dir):
        """Test storing and loading bytes."""
        store = LocalBlobStore(temp_dir)

        key = await store.upload("uploads/s1/output.apks", b"Hello, World!")
        assert key == "uploads/s1/output.apks"
        assert await store.download(key) == b"Hello, World!"

    async def test_upload_file(self, temp_dir):
        """Local files are streamed into the store."""
        store = LocalBlobStore(temp_dir / "storage")
        source = temp_dir / "app-universal.apk"
        source.write_bytes(b"\x00" * 300_000)

        await store.upload("downloads/s1/app-universal.apk", source)

        assert await store.download("downloads/s1/app-universal.apk") == source.read_bytes()

    async def test_download_missing_key(self, temp_dir):
        """Missing keys raise BlobNotFoundError."""
        store = LocalBlobStore(temp_dir)
        with pytest.raises(BlobNotFoundError):
            await store.download("uploads/nope/output.apks")

    async def test_overwrite_rules(self, temp_dir):
        """Existing keys need overwrite, and overwriting is idempotent."""
        store = LocalBlobStore(temp_dir)
        key = "downloads/s1/app.apk"
        await store.upload(key, b"v1")

        with pytest.raises(BlobExistsError):
            await store.upload(key, b"v2")

        options = UploadOptions(overwrite=True)
        await store.upload(key, b"v2", options)
        await store.upload(key, b"v2", options)
        assert await store.download(key) == b"v2"

    async def test_list_is_one_level(self, temp_dir):
        """Listing returns the objects directly in a folder, without sidecars."""
        store = LocalBlobStore(temp_dir)
        await store.upload("uploads/s1/output.apks", b"a")
        await store.upload("uploads/s1/extra.bin", b"bb")
        await store.upload("uploads/s2/output.apks", b"c")

        entries = await store.list("uploads/s1")

        assert [e.name for e in entries] == ["extra.bin", "output.apks"]
        assert [e.size_bytes for e in entries] == [2, 1]
        assert await store.list("uploads/missing") == []

    async def test_contains(self, temp_dir):
        """Existence is checked through the containing prefix."""
        store = LocalBlobStore(temp_dir)
        await store.upload("uploads/s1/output.apks", b"a")

        assert await store.contains("uploads/s1/output.apks")
        assert not await store.contains("uploads/s1/other.apks")
        assert not await store.contains("uploads/s9/output.apks")

    async def test_metadata(self, temp_dir):
        """Uploads record content type, cache hint, size and hash."""
        store = LocalBlobStore(temp_dir)
        key = "downloads/s1/app.apk"
        await store.upload(
            key,
            b"apk-bytes",
            UploadOptions(
                content_type="application/vnd.android.package-archive",
                cache_control_seconds=3600,
            ),
        )

        meta = await store.get_metadata(key)
        assert meta["content_type"] == "application/vnd.android.package-archive"
        assert meta["cache_control"] == 3600
        assert meta["size_bytes"] == 9
        assert meta["hash"] == store.compute_hash(b"apk-bytes")
        assert "_stored_at" in meta

    async def test_public_url(self, temp_dir):
        """Public URLs follow the object/public/<bucket>/<key> layout."""
        store = LocalBlobStore(temp_dir, public_base_url="https://files.example.com/storage/v1/")
        assert (
            store.public_url("downloads/s1/app.apk")
            == "https://files.example.com/storage/v1/object/public/appfiles/downloads/s1/app.apk"
        )

    async def test_path_traversal_prevention(self, temp_dir):
        """Test that path traversal is prevented."""
        store = LocalBlobStore(temp_dir / "storage")

        await store.upload("../../../etc/passwd", b"content")

        written = [p for p in (temp_dir / "storage").rglob("*") if p.is_file()]
        assert written
        assert not (temp_dir / "etc").exists()

    async def test_download_timeout(self, temp_dir, monkeypatch):
        """A stalled backend read is abandoned after the budget."""
        store = LocalBlobStore(temp_dir)
        await store.upload("uploads/s1/output.apks", b"a")

        async def stalled_read(key):
            await asyncio.sleep(60)

        monkeypatch.setattr(store, "_read", stalled_read)

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            await store.download("uploads/s1/output.apks", timeout=0.2)
        assert time.monotonic() - started < 2


@pytest.mark.asyncio
class TestBoundedWait:
    """Tests for the bounded-wait helper."""

    async def test_returns_result(self):
        async def quick():
            return 42

        assert await bounded_wait(quick(), 1.0) == 42

    async def test_without_budget(self):
        async def quick():
            return "done"

        assert await bounded_wait(quick(), None) == "done"

    async def test_propagates_errors(self):
        async def broken():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await bounded_wait(broken(), 1.0)


@pytest.mark.asyncio
class TestLocalSessionStore:
    """Tests for session records."""

    async def test_insert_and_get(self, temp_dir):
        store = LocalSessionStore(temp_dir)
        session = Session.new("uploads/s1/output.apks", session_id="s1")

        await store.insert(session)
        loaded = await store.get("s1")

        assert loaded == session

    async def test_get_missing(self, temp_dir):
        store = LocalSessionStore(temp_dir)
        assert await store.get("unknown") is None

    async def test_identical_insert_is_idempotent(self, temp_dir):
        """Re-inserting the same record is accepted."""
        store = LocalSessionStore(temp_dir)
        session = Session.new("uploads/s1/output.apks", session_id="s1")

        await store.insert(session)
        await store.insert(session)

        assert (await store.get("s1")).archive_key == "uploads/s1/output.apks"

    async def test_conflicting_insert_is_rejected(self, temp_dir):
        """An identifier is never repointed at another archive."""
        store = LocalSessionStore(temp_dir)
        await store.insert(Session.new("uploads/s1/output.apks", session_id="s1"))

        with pytest.raises(SessionConflictError):
            await store.insert(Session.new("uploads/other/output.apks", session_id="s1"))

        assert (await store.get("s1")).archive_key == "uploads/s1/output.apks"

    @pytest.mark.parametrize(
        "near_miss",
        ["s1!", "s1..", "../s1", "s1/", "s 1", "./s1", ""],
    )
    async def test_near_miss_identifiers_are_not_found(self, temp_dir, near_miss):
        """Identifiers that only resemble a stored one never resolve to it."""
        store = LocalSessionStore(temp_dir)
        await store.insert(Session.new("uploads/s1/output.apks", session_id="s1"))

        assert await store.get(near_miss) is None
        assert (await store.get("s1")).session_id == "s1"

    async def test_insert_rejects_malformed_identifier(self, temp_dir):
        store = LocalSessionStore(temp_dir)

        with pytest.raises(StorageError):
            await store.insert(Session.new("uploads/x/output.apks", session_id="../x"))

        assert not (temp_dir / "x.json").exists()

    async def test_record_for_another_identifier_is_ignored(self, temp_dir):
        """A record whose stored identifier differs from its file name is not returned."""
        store = LocalSessionStore(temp_dir)
        await store.insert(Session.new("uploads/s1/output.apks", session_id="s1"))
        (store.root / "s2.json").write_text((store.root / "s1.json").read_text(encoding="utf-8"), encoding="utf-8")

        assert await store.get("s2") is None
