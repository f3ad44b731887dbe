"""Unit tests for core models."""

import json
from datetime import datetime

import pytest

from apkdrop.core.exceptions import (
    ErrorKind,
    InvalidDeviceSpecError,
    NoMatchingPackageError,
    StoredFileNotFoundError,
)
from apkdrop.core.types import format_file_size
from apkdrop.models import FailureResponse, Session, generate_session_id, parse_device_spec


class TestDeviceSpec:
    """Tests for device spec validation."""

    def test_valid_spec(self):
        """A spec with sdkVersion and supportedAbis parses."""
        spec = parse_device_spec({"sdkVersion": "33", "supportedAbis": ["arm64-v8a", "x86"]})
        assert spec.sdk_version == "33"
        assert spec.supported_abis == ["arm64-v8a", "x86"]

    def test_extra_fields_pass_through(self):
        """Fields APKdrop does not interpret are kept in the document."""
        raw = {
            "sdkVersion": "30",
            "supportedAbis": ["x86_64"],
            "screenDensity": 420,
            "supportedLocales": ["en-US"],
        }
        document = parse_device_spec(raw).to_document()
        assert document == raw
        assert json.loads(parse_device_spec(raw).to_json()) == raw

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "not-an-object",
            ["arm64-v8a"],
            {},
            {"supportedAbis": ["x86"]},
            {"sdkVersion": "33"},
            {"sdkVersion": "", "supportedAbis": ["x86"]},
            {"sdkVersion": 33, "supportedAbis": ["x86"]},
            {"sdkVersion": "33", "supportedAbis": []},
            {"sdkVersion": "33", "supportedAbis": "x86"},
        ],
    )
    def test_invalid_specs(self, raw):
        """Missing or mistyped fields raise InvalidDeviceSpecError."""
        with pytest.raises(InvalidDeviceSpecError) as excinfo:
            parse_device_spec(raw)
        assert excinfo.value.kind == ErrorKind.INVALID_DEVICE_SPEC

    def test_missing_field_is_named(self):
        """The offending field is reported."""
        with pytest.raises(InvalidDeviceSpecError) as excinfo:
            parse_device_spec({"sdkVersion": "33"})
        assert excinfo.value.field_name == "supportedAbis"


class TestSession:
    """Tests for session records."""

    def test_generated_ids_are_unique(self):
        """Identifiers carry a timestamp prefix and do not repeat."""
        ids = {generate_session_id() for _ in range(200)}
        assert len(ids) == 200
        prefix, _, suffix = next(iter(ids)).partition("_")
        assert prefix.isdigit()
        assert len(suffix) == 32

    def test_session_is_immutable(self):
        """Sessions cannot be changed after creation."""
        session = Session.new("uploads/abc/output.apks", session_id="abc")
        with pytest.raises(Exception):
            session.archive_key = "uploads/other/output.apks"
        assert isinstance(session.created_at, datetime)


class TestFailureResponse:
    """Tests for rendering errors as failure responses."""

    def test_pipeline_error(self):
        """Pipeline errors keep their kind and message."""
        error = StoredFileNotFoundError(message="Archive is missing from storage", key="uploads/x/output.apks")
        response = FailureResponse.from_error(error)
        assert response.kind == ErrorKind.FILE_NOT_FOUND
        assert response.status_code == 404
        assert response.message == "Archive is missing from storage"
        assert response.trace is None

    def test_public_details(self):
        """Only public context entries become details."""
        error = NoMatchingPackageError(
            message="No APK matches the device architectures",
            context={"supported_abis": ["x86"], "candidates": ["app-arm64-v8a.apk"], "path": "/tmp/secret"},
        )
        response = FailureResponse.from_error(error)
        assert response.details == {"supported_abis": ["x86"], "candidates": ["app-arm64-v8a.apk"]}

    def test_unexpected_error_is_internal(self):
        """Unknown exceptions hide their message outside development mode."""
        response = FailureResponse.from_error(RuntimeError("/var/lib/secret exploded"))
        assert response.kind == ErrorKind.INTERNAL_ERROR
        assert "/var/lib/secret" not in response.model_dump_json()

    def test_trace_in_development(self):
        """Development mode attaches the trace and raw message."""
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            response = FailureResponse.from_error(e, include_trace=True)
        assert "RuntimeError: boom" in response.trace
        assert response.details == "boom"

    def test_generic_message_keeps_reason(self):
        """A caller-facing message moves the error's own message into details."""
        error = InvalidDeviceSpecError(message="Field required", field_name="sdkVersion")
        response = FailureResponse.from_error(error, message="Processing failed")
        assert response.message == "Processing failed"
        assert response.details == {"reason": "Field required", "field": "sdkVersion"}
        assert response.status_code == 400


class TestFormatFileSize:
    """Tests for human-readable sizes."""

    @pytest.mark.parametrize(
        "size_bytes,expected",
        [
            (0, "0.00 B"),
            (512, "512.00 B"),
            (102400, "100.00 KB"),
            (int(1.5 * 1024 * 1024), "1.50 MB"),
            (3 * 1024**4, "3072.00 GB"),
        ],
    )
    def test_format(self, size_bytes, expected):
        assert format_file_size(size_bytes) == expected
