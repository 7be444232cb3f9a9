"""
Unit Tests: S3 Object Client

Tests:
    - HEAD response mapping, including full-object CRC32C checksums
    - CompleteMultipartUpload with a failing follow-up HEAD
    - Error mapping of a missing object
"""

from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from objectmesh.core.errors import ErrorCode
from objectmesh.storage.config import S3Config
from objectmesh.storage.protocols import UploadedPart
from objectmesh.storage.s3_store import S3ObjectStore


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """Records calls; HEAD answers with `head_response` or raises `head_error`."""

    def __init__(self, head_response=None, head_error=None, complete_etag='"abc-2"'):
        self.head_response = head_response or {}
        self.head_error = head_error
        self.complete_etag = complete_etag
        self.calls = []

    async def head_object(self, **kwargs):
        self.calls.append(("head_object", kwargs))
        if self.head_error is not None:
            raise self.head_error
        return self.head_response

    async def complete_multipart_upload(self, **kwargs):
        self.calls.append(("complete_multipart_upload", kwargs))
        return {"ETag": self.complete_etag, "Key": kwargs["Key"]}


def connected_store(client):
    store = S3ObjectStore(S3Config(bucket_name="media"))
    store._client = client
    store._connected = True
    return store


class TestHeadObject:
    """Tests for S3ObjectStore.head_object()."""

    @pytest.mark.asyncio
    async def test_maps_response(self):
        client = FakeS3Client(head_response={
            "ContentLength": 250,
            "LastModified": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "ETag": '"d41d8cd98f00b204e9800998ecf8427e"',
            "ChecksumCRC32C": "yZRlqg==",
        })

        stat = (await connected_store(client).head_object("obj")).unwrap()

        assert stat.size == 250
        assert stat.last_modified == "Wed, 01 May 2024 12:00:00 GMT"
        assert stat.etag == "d41d8cd98f00b204e9800998ecf8427e"
        assert stat.checksum_crc32c == "yZRlqg=="
        assert client.calls == [
            ("head_object", {"Bucket": "media", "Key": "obj", "ChecksumMode": "ENABLED"}),
        ]

    @pytest.mark.asyncio
    async def test_composite_checksum_is_dropped(self):
        """Test a per-part checksum of a multipart object is not kept."""
        client = FakeS3Client(head_response={
            "ContentLength": 250, "ETag": '"abc-3"', "ChecksumCRC32C": "yZRlqg==-3",
        })

        stat = (await connected_store(client).head_object("obj")).unwrap()

        assert stat.checksum_crc32c is None

    @pytest.mark.asyncio
    async def test_missing_object(self):
        client = FakeS3Client(head_error=client_error("404", "HeadObject"))

        result = await connected_store(client).head_object("missing")

        assert result.error.code == ErrorCode.STORAGE_OBJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_not_connected(self):
        result = await S3ObjectStore(S3Config(bucket_name="media")).head_object("obj")

        assert result.error.code == ErrorCode.STORAGE_NOT_CONNECTED


class TestCompleteMultipartUpload:
    """Tests for S3ObjectStore.complete_multipart_upload()."""

    @pytest.mark.asyncio
    async def test_stat_of_new_object(self):
        client = FakeS3Client(head_response={"ContentLength": 250, "ETag": '"abc-2"'})
        parts = [UploadedPart(number=2, etag="b"), UploadedPart(number=1, etag="a")]

        stat = (await connected_store(client).complete_multipart_upload("obj", "up-1", parts)).unwrap()

        assert stat.size == 250
        assert stat.etag == "abc-2"
        name, kwargs = client.calls[0]
        assert name == "complete_multipart_upload"
        assert kwargs["MultipartUpload"] == {
            "Parts": [{"PartNumber": 1, "ETag": '"a"'}, {"PartNumber": 2, "ETag": '"b"'}],
        }

    @pytest.mark.asyncio
    async def test_failed_head_after_completion_still_succeeds(self):
        """Test the completed object is reported even when its stat fails."""
        client = FakeS3Client(head_error=client_error("503", "HeadObject"))

        result = await connected_store(client).complete_multipart_upload(
            "obj", "up-1", [UploadedPart(number=1, etag="a")],
        )

        stat = result.unwrap()
        assert stat.etag == "abc-2"
        assert stat.size == -1
        assert [name for name, _ in client.calls] == ["complete_multipart_upload", "head_object"]
