"""
In-Memory Object Store

Dict-backed implementation of ObjectClient for tests and local use.
Objects carry MD5 ETags, full-object CRC32C checksums and RFC 1123
Last-Modified strings like an S3-compatible service; multipart sessions follow the same lifecycle
(initiate, upload part, complete or abort).
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional, Sequence
from uuid import uuid4

from objectmesh.core.checksum import crc32c_of, encode_crc32c
from objectmesh.core.types import Result, Ok, Err
from objectmesh.core.errors import StorageError
from objectmesh.storage.protocols import ObjectStat, UploadedPart


def _http_date(moment: Optional[datetime] = None) -> str:
    return format_datetime(moment or datetime.now(timezone.utc), usegmt=True)


@dataclass
class _MultipartSession:
    key: str
    content_type: str
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


class InMemoryObjectStore:
    """
    In-memory object store with multipart sessions.

    Example:
        store = InMemoryObjectStore()
        await store.put_object("videos/a.mp4", data)
        stat = (await store.head_object("videos/a.mp4")).unwrap()

    Attributes:
        range_reads: Every (key, start, end) served by get_object_range,
            in arrival order.
        part_uploads: Every (upload_id, part_number) accepted by upload_part.
    """

    __slots__ = (
        "_objects",
        "_stats",
        "_content_types",
        "_sessions",
        "_lock",
        "range_reads",
        "part_uploads",
    )

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self._stats: dict[str, ObjectStat] = {}
        self._content_types: dict[str, str] = {}
        self._sessions: dict[str, _MultipartSession] = {}
        self._lock = asyncio.Lock()
        self.range_reads: list[tuple[str, int, int]] = []
        self.part_uploads: list[tuple[str, int]] = []

    # -------------------------------------------------------------------------
    # WHOLE-OBJECT HELPERS
    # -------------------------------------------------------------------------

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        last_modified: Optional[datetime] = None,
    ) -> Result[ObjectStat, StorageError]:
        """
        Store object and compute its ETag (MD5 hex digest).

        Args:
            last_modified: Override the Last-Modified time; defaults to now.
        """
        async with self._lock:
            stat = ObjectStat(
                size=len(data),
                last_modified=_http_date(last_modified),
                etag=hashlib.md5(data).hexdigest(),
                checksum_crc32c=encode_crc32c(crc32c_of(data)),
            )
            self._objects[key] = bytes(data)
            self._stats[key] = stat
            self._content_types[key] = content_type
            return Ok(stat)

    async def get_object(self, key: str) -> Result[bytes, StorageError]:
        """Retrieve the full content of an object."""
        async with self._lock:
            if key not in self._objects:
                return Err(StorageError.object_not_found(key))
            return Ok(self._objects[key])

    async def delete_object(self, key: str) -> Result[None, StorageError]:
        async with self._lock:
            self._objects.pop(key, None)
            self._stats.pop(key, None)
            self._content_types.pop(key, None)
            return Ok(None)

    def content_type(self, key: str) -> Optional[str]:
        return self._content_types.get(key)

    def open_uploads(self) -> list[str]:
        """Upload ids of sessions that are neither completed nor aborted."""
        return list(self._sessions)

    # -------------------------------------------------------------------------
    # OBJECT CLIENT PROTOCOL
    # -------------------------------------------------------------------------

    async def head_object(self, key: str) -> Result[ObjectStat, StorageError]:
        async with self._lock:
            stat = self._stats.get(key)
            if stat is None:
                return Err(StorageError.object_not_found(key))
            return Ok(stat)

    async def get_object_range(
        self,
        key: str,
        start: int,
        end: int,
    ) -> Result[bytes, StorageError]:
        """Serve bytes [start, end]; end is clipped to the object size."""
        async with self._lock:
            data = self._objects.get(key)
            if data is None:
                return Err(StorageError.object_not_found(key))
            if start < 0 or start > end or start >= len(data):
                return Err(StorageError.request_failed(
                    "GetObject", key, detail=f"invalid range bytes={start}-{end}",
                ))
            self.range_reads.append((key, start, end))
            return Ok(data[start:end + 1])

    async def initiate_multipart_upload(
        self,
        key: str,
        content_type: Optional[str] = None,
    ) -> Result[str, StorageError]:
        async with self._lock:
            upload_id = uuid4().hex
            self._sessions[upload_id] = _MultipartSession(
                key=key,
                content_type=content_type or "application/octet-stream",
            )
            return Ok(upload_id)

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[UploadedPart, StorageError]:
        async with self._lock:
            session = self._sessions.get(upload_id)
            if session is None or session.key != key:
                return Err(StorageError.request_failed(
                    "UploadPart", key, detail=f"no such upload {upload_id}",
                ))
            etag = hashlib.md5(data).hexdigest()
            session.parts[part_number] = (bytes(data), etag)
            self.part_uploads.append((upload_id, part_number))
            return Ok(UploadedPart(number=part_number, etag=etag))

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> Result[ObjectStat, StorageError]:
        """
        Concatenate the listed parts in order.

        The ETag follows the S3 multipart convention:
        md5(concat(part md5 digests)) + "-" + part count.
        """
        async with self._lock:
            session = self._sessions.get(upload_id)
            if session is None or session.key != key:
                return Err(StorageError.request_failed(
                    "CompleteMultipartUpload", key, detail=f"no such upload {upload_id}",
                ))

            numbers = [p.number for p in parts]
            if not numbers or numbers != sorted(set(numbers)):
                return Err(StorageError.request_failed(
                    "CompleteMultipartUpload", key, detail="parts must be unique and ascending",
                ))

            chunks: list[bytes] = []
            digest = hashlib.md5()
            for part in parts:
                stored = session.parts.get(part.number)
                if stored is None or stored[1] != part.etag:
                    return Err(StorageError.request_failed(
                        "CompleteMultipartUpload", key, detail=f"invalid part {part.number}",
                    ))
                chunks.append(stored[0])
                digest.update(bytes.fromhex(stored[1]))

            data = b"".join(chunks)
            stat = ObjectStat(
                size=len(data),
                last_modified=_http_date(),
                etag=f"{digest.hexdigest()}-{len(parts)}",
                checksum_crc32c=encode_crc32c(crc32c_of(data)),
            )
            self._objects[key] = data
            self._stats[key] = stat
            self._content_types[key] = session.content_type
            del self._sessions[upload_id]
            return Ok(stat)

    async def abort_multipart_upload(
        self,
        key: str,
        upload_id: str,
    ) -> Result[None, StorageError]:
        async with self._lock:
            session = self._sessions.get(upload_id)
            if session is None or session.key != key:
                return Err(StorageError.request_failed(
                    "AbortMultipartUpload", key, detail=f"no such upload {upload_id}",
                ))
            del self._sessions[upload_id]
            return Ok(None)
