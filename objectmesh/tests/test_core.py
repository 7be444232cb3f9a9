"""
Unit Tests: Core Types, Errors and Configuration

Tests:
    - Result monad helpers
    - ByteRange parsing
    - Error serialization
    - CRC32C helpers
    - TransferConfig / ObjectMeshConfig / S3Config validation and env loading
"""

from pathlib import Path

import pytest

from objectmesh.core.checksum import combine_crc32c, crc32c_of, encode_crc32c
from objectmesh.core.config import ObjectMeshConfig, ObservabilityConfig, TransferConfig
from objectmesh.core.errors import ConfigurationError, ErrorCode, TransferError
from objectmesh.core.types import ByteRange, Ok, Err
from objectmesh.storage.config import S3Config


class TestResult:
    """Tests for Ok / Err."""

    def test_ok(self):
        result = Ok(2)
        assert result.is_ok()
        assert result.map(lambda v: v * 3).unwrap() == 6
        assert result.flat_map(lambda v: Err("boom")).is_err()

    def test_err(self):
        result = Err("boom")
        assert result.is_err()
        assert result.unwrap_or(7) == 7
        with pytest.raises(RuntimeError):
            result.unwrap()


class TestByteRange:
    """Tests for ByteRange."""

    def test_parse_closed(self):
        assert ByteRange.from_http_header("bytes=0-99").unwrap() == ByteRange(0, 99)

    def test_parse_open_and_suffix(self):
        assert ByteRange.from_http_header("bytes=100-").unwrap() == ByteRange(start=100)
        suffix = ByteRange.from_http_header("bytes=-50").unwrap()
        assert suffix.is_suffix
        assert suffix.end == 50

    def test_parse_rejects_garbage(self):
        assert ByteRange.from_http_header("items=0-1").is_err()
        assert ByteRange.from_http_header("bytes=0-1,5-9").is_err()
        assert ByteRange.from_http_header("bytes=a-b").is_err()

    def test_header_round_trip(self):
        assert ByteRange(10, 20).to_http_header() == "bytes=10-20"

    def test_requires_a_bound(self):
        with pytest.raises(ValueError):
            ByteRange()


class TestErrors:
    """Tests for the error hierarchy."""

    def test_to_dict(self):
        error = ConfigurationError.invalid_part_size(10, 100, 1000)
        data = error.to_dict()
        assert data["code"] == "CONFIG_INVALID_PART_SIZE"
        assert data["code_value"] == 2001
        assert data["context"] == {"part_size": 10, "min": 100, "max": 1000}

    def test_str_contains_code(self):
        error = TransferError.short_read(3, 100, 40)
        assert str(error).startswith("[TRANSFER_SHORT_READ]")
        assert error.code is ErrorCode.TRANSFER_SHORT_READ

    def test_is_exception(self):
        with pytest.raises(TransferError):
            raise TransferError.assembly_failed("/tmp/x", OSError("denied"))


class TestChecksum:
    """Tests for CRC32C helpers."""

    def test_check_value(self):
        assert crc32c_of(b"123456789") == 0xE3069283
        assert encode_crc32c(0xE3069283) == "4waSgw=="

    def test_combine_matches_whole(self):
        data = bytes(range(256)) * 20
        pieces = [data[:1000], data[1000:4000], data[4000:]]

        combined = combine_crc32c((crc32c_of(p), len(p)) for p in pieces)

        assert combined == crc32c_of(data)

    def test_combine_with_zero_first_crc(self):
        """Test a leading part whose CRC is 0 is not skipped."""
        assert combine_crc32c([(crc32c_of(b""), 0), (crc32c_of(b"abc"), 3)]) == crc32c_of(b"abc")

    def test_combine_nothing(self):
        assert combine_crc32c([]) == 0


class TestTransferConfig:
    """Tests for TransferConfig."""

    def test_defaults(self):
        config = TransferConfig()
        assert config.routines == 3
        assert config.checkpoint_enabled is True
        assert config.min_part_size <= config.part_size <= config.max_part_size

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            TransferConfig(routines=0)
        with pytest.raises(ValueError):
            TransferConfig(min_part_size=0)
        with pytest.raises(ValueError):
            TransferConfig(min_part_size=200, max_part_size=100)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OBJECTMESH_PART_SIZE", "1048576")
        monkeypatch.setenv("OBJECTMESH_ROUTINES", "8")
        monkeypatch.setenv("OBJECTMESH_CHECKPOINT", "false")
        monkeypatch.setenv("OBJECTMESH_CHECKPOINT_DIR", "/var/cp")

        config = TransferConfig.from_env()

        assert config.part_size == 1048576
        assert config.routines == 8
        assert config.checkpoint_enabled is False
        assert config.checkpoint_dir == Path("/var/cp")
        assert config.verify_checksum is True

    def test_verify_checksum_from_env(self, monkeypatch):
        monkeypatch.setenv("OBJECTMESH_VERIFY_CHECKSUM", "0")
        assert TransferConfig.from_env().verify_checksum is False


class TestObjectMeshConfig:
    """Tests for ObjectMeshConfig."""

    def test_from_env_error(self, monkeypatch):
        monkeypatch.setenv("OBJECTMESH_ROUTINES", "lots")
        assert ObjectMeshConfig.from_env().is_err()

    def test_validate(self):
        assert ObjectMeshConfig().validate().is_ok()
        bad_part = ObjectMeshConfig(transfer=TransferConfig(part_size=10))
        assert bad_part.validate().is_err()
        bad_level = ObjectMeshConfig(observability=ObservabilityConfig(log_level="LOUD"))
        assert bad_level.validate().is_err()


class TestS3Config:
    """Tests for S3Config."""

    def test_requires_bucket(self, monkeypatch):
        monkeypatch.delenv("S3_BUCKET", raising=False)
        with pytest.raises(ValueError):
            S3Config.from_env()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "media")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        monkeypatch.setenv("S3_ACCESS_KEY_ID", "key")
        monkeypatch.setenv("S3_SECRET_ACCESS_KEY", "secret")
        monkeypatch.setenv("S3_VERIFY_SSL", "false")
        monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)

        config = S3Config.from_env()

        assert config.bucket_name == "media"
        assert config.client_kwargs()["endpoint_url"] == "http://localhost:9000"
        assert config.client_kwargs()["verify"] is False
        assert config.session_kwargs() == {
            "aws_access_key_id": "key",
            "aws_secret_access_key": "secret",
        }

    def test_rejects_short_bucket(self):
        with pytest.raises(ValueError):
            S3Config(bucket_name="ab")
