"""
Object Client Protocols: Collaborator Contracts of the Transfer Engine

Structural subtyping protocols (PEP 544) for the narrow slice of the
object-storage API the multipart engine depends on:
- object stat (HEAD)
- ranged object read
- multipart session lifecycle (initiate, upload part, complete, abort)

Design Principles:
    - Zero-exception control flow via Result[T, E] monad
    - Async-first; implementations own transport and retries
    - Request signing and wire format stay behind the protocol
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

from objectmesh.core.types import Result
from objectmesh.core.errors import StorageError


# =============================================================================
# VALUE TYPES
# =============================================================================
@dataclass(frozen=True, slots=True)
class ObjectStat:
    """
    Identity of a remote object as reported by the service.

    Attributes:
        size: Content length in bytes.
        last_modified: Last-Modified header value, kept verbatim so that
            freshness comparison is exact.
        etag: Entity tag with surrounding quotes stripped.
        checksum_crc32c: Base64 CRC32C of the full object, when the
            service reports one.
    """
    size: int
    last_modified: str
    etag: str
    checksum_crc32c: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "size": self.size,
            "lastModified": self.last_modified,
            "etag": self.etag,
            "checksumCrc32c": self.checksum_crc32c,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ObjectStat:
        return cls(
            size=int(data["size"]),
            last_modified=str(data["lastModified"]),
            etag=str(data["etag"]),
            checksum_crc32c=data.get("checksumCrc32c"),
        )


@dataclass(frozen=True, slots=True)
class UploadedPart:
    """Receipt for one part of a multipart session."""
    number: int
    etag: str


# =============================================================================
# OBJECT CLIENT PROTOCOL
# =============================================================================
@runtime_checkable
class ObjectClient(Protocol):
    """
    Operations the download and upload orchestrators call.

    All methods are coroutines returning Result; a missing object is
    reported as StorageError.object_not_found.
    """

    async def head_object(self, key: str) -> Result[ObjectStat, StorageError]:
        """Stat an object without reading its content."""
        ...

    async def get_object_range(
        self,
        key: str,
        start: int,
        end: int,
    ) -> Result[bytes, StorageError]:
        """Read bytes [start, end] (inclusive) of an object."""
        ...

    async def initiate_multipart_upload(
        self,
        key: str,
        content_type: Optional[str] = None,
    ) -> Result[str, StorageError]:
        """Open a multipart session and return its upload id."""
        ...

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[UploadedPart, StorageError]:
        """Upload one part (1-based number) into an open session."""
        ...

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> Result[ObjectStat, StorageError]:
        """Assemble the uploaded parts, sorted by number, into the object."""
        ...

    async def abort_multipart_upload(
        self,
        key: str,
        upload_id: str,
    ) -> Result[None, StorageError]:
        """Discard an open session and its parts."""
        ...
