"""
S3-Compatible Object Client
===========================

ObjectClient implementation for AWS S3, MinIO, Cloudflare R2 and other
S3-compatible services, built on aioboto3.

Operation mapping:
------------------
| Protocol method            | S3 API                   |
|----------------------------|--------------------------|
| head_object                | HeadObject               |
| get_object_range           | GetObject + Range header |
| initiate_multipart_upload  | CreateMultipartUpload    |
| upload_part                | UploadPart               |
| complete_multipart_upload  | CompleteMultipartUpload  |
| abort_multipart_upload     | AbortMultipartUpload     |

Retries of individual requests are left to botocore's retry policy
(S3Config.max_retries); the transfer engine resumes at part granularity.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Optional, Sequence, TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError

from objectmesh.core.types import Result, Ok, Err
from objectmesh.core.errors import StorageError
from objectmesh.storage.config import S3Config
from objectmesh.storage.protocols import ObjectStat, UploadedPart

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def _format_last_modified(value: Any) -> str:
    if isinstance(value, datetime):
        return format_datetime(value.astimezone(timezone.utc), usegmt=True)
    return str(value or "")


def _full_object_crc32c(response: dict[str, Any]) -> Optional[str]:
    # Composite multipart checksums ("<b64>-<parts>") cannot be compared
    # with a CRC of the whole content.
    value = response.get("ChecksumCRC32C")
    if not value or "-" in value:
        return None
    return str(value)


def _stat_from_response(response: dict[str, Any]) -> ObjectStat:
    return ObjectStat(
        size=int(response.get("ContentLength", 0)),
        last_modified=_format_last_modified(response.get("LastModified")),
        etag=str(response.get("ETag", "")).strip('"'),
        checksum_crc32c=_full_object_crc32c(response),
    )


def _map_error(operation: str, key: str, exc: Exception) -> StorageError:
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return StorageError.object_not_found(key)
    return StorageError.request_failed(operation, key, cause=exc)


class S3ObjectStore:
    """
    S3-compatible object client.

    Example:
        >>> config = S3Config.from_env()
        >>> async with S3ObjectStore(config) as store:
        ...     stat = await store.head_object("videos/a.mp4")
    """

    __slots__ = ("_config", "_client", "_client_cm", "_session", "_connected")

    def __init__(self, config: S3Config) -> None:
        """
        Initialize the client wrapper.

        Note:
            Call `connect()` (or use `async with`) before any operation.
        """
        self._config = config
        self._client: Optional["S3Client"] = None
        self._client_cm: Any = None
        self._session: Any = None
        self._connected = False

    @property
    def bucket(self) -> str:
        return self._config.bucket_name

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """
        Create the aioboto3 session and S3 client and check the bucket.

        Returns:
            Ok(None) on success, Err(StorageError) on failure.
        """
        try:
            import aioboto3
            from botocore.config import Config
        except ImportError:
            return Err(StorageError.dependency_missing("aioboto3"))

        try:
            self._session = aioboto3.Session(**self._config.session_kwargs())
            client_config = Config(
                max_pool_connections=self._config.max_concurrency,
                connect_timeout=self._config.connect_timeout_seconds,
                read_timeout=self._config.read_timeout_seconds,
                retries={"max_attempts": self._config.max_retries},
            )
            self._client_cm = self._session.client(
                "s3", config=client_config, **self._config.client_kwargs(),
            )
            self._client = await self._client_cm.__aenter__()
            await self._client.head_bucket(Bucket=self._config.bucket_name)
        except (ClientError, BotoCoreError) as e:
            await self.close()
            return Err(StorageError.request_failed("HeadBucket", self._config.bucket_name, cause=e))

        self._connected = True
        logger.info("Connected to bucket %s", self._config.bucket_name)
        return Ok(None)

    async def close(self) -> None:
        """
        Close the S3 client and release resources.

        Safe to call multiple times.
        """
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
        self._client_cm = None
        self._client = None
        self._connected = False

    async def __aenter__(self) -> S3ObjectStore:
        result = await self.connect()
        if result.is_err():
            raise result.error
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _require_client(self) -> Result["S3Client", StorageError]:
        if not self._connected or self._client is None:
            return Err(StorageError.not_connected())
        return Ok(self._client)

    # -------------------------------------------------------------------------
    # OBJECT CLIENT PROTOCOL
    # -------------------------------------------------------------------------

    async def head_object(self, key: str) -> Result[ObjectStat, StorageError]:
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        try:
            response = await client.head_object(
                Bucket=self.bucket, Key=key, ChecksumMode="ENABLED",
            )
        except (ClientError, BotoCoreError) as e:
            return Err(_map_error("HeadObject", key, e))
        return Ok(_stat_from_response(response))

    async def get_object_range(
        self,
        key: str,
        start: int,
        end: int,
    ) -> Result[bytes, StorageError]:
        """Read bytes [start, end] (inclusive) with a Range request."""
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        try:
            response = await client.get_object(
                Bucket=self.bucket,
                Key=key,
                Range=f"bytes={start}-{end}",
            )
            async with response["Body"] as stream:
                data = await stream.read()
        except (ClientError, BotoCoreError, asyncio.TimeoutError) as e:
            return Err(_map_error("GetObject", key, e))
        return Ok(data)

    async def initiate_multipart_upload(
        self,
        key: str,
        content_type: Optional[str] = None,
    ) -> Result[str, StorageError]:
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            response = await client.create_multipart_upload(**kwargs)
        except (ClientError, BotoCoreError) as e:
            return Err(_map_error("CreateMultipartUpload", key, e))
        return Ok(response["UploadId"])

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[UploadedPart, StorageError]:
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        try:
            response = await client.upload_part(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except (ClientError, BotoCoreError, asyncio.TimeoutError) as e:
            return Err(_map_error("UploadPart", key, e))
        return Ok(UploadedPart(number=part_number, etag=str(response["ETag"]).strip('"')))

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> Result[ObjectStat, StorageError]:
        """
        Complete the session, then stat the new object.

        The stat is best-effort: the object exists once the completion
        succeeds, so a failed HEAD yields a stat with the completion ETag
        and an unknown size (-1).
        """
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        try:
            completed = await client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [
                        {"PartNumber": p.number, "ETag": f'"{p.etag}"'}
                        for p in sorted(parts, key=lambda p: p.number)
                    ],
                },
            )
        except (ClientError, BotoCoreError) as e:
            return Err(_map_error("CompleteMultipartUpload", key, e))
        etag = str(completed.get("ETag", "")).strip('"')

        # CompleteMultipartUpload does not report size or Last-Modified.
        try:
            response = await client.head_object(
                Bucket=self.bucket, Key=key, ChecksumMode="ENABLED",
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning("Stat of completed object %s failed: %s", key, e)
            return Ok(ObjectStat(size=-1, last_modified="", etag=etag))
        stat = _stat_from_response(response)
        return Ok(replace(stat, etag=etag or stat.etag))

    async def abort_multipart_upload(
        self,
        key: str,
        upload_id: str,
    ) -> Result[None, StorageError]:
        match self._require_client():
            case Err() as err:
                return err
            case Ok(client):
                pass

        try:
            await client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
            )
        except (ClientError, BotoCoreError) as e:
            return Err(_map_error("AbortMultipartUpload", key, e))
        return Ok(None)
