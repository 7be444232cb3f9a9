"""
Transfer Checkpoints: Durable Per-Part Progress for Resume

A checkpoint records the full part plan of a transfer, a completion flag
per part and a snapshot of the identity of the source (remote object for
downloads, local file for uploads). It is rewritten after every completed
part.

A checkpoint is only trusted when:
1. its magic tag matches the transfer direction,
2. its content hash matches the hash recomputed over every other field,
3. the live source identity still matches the snapshot.

Otherwise the transfer starts over from a fresh plan. The content hash
guards against truncated or hand-edited files; it is not a security
control.

File layout (JSON, mode 0600), download:
    magic, contentHash, filePath, objectKey, objectStat{size,lastModified,etag,checksumCrc32c},
    parts[]{index,start,end,offset,number}, partStatus[], spanStart, spanEnd,
    partCrcs[]

upload:
    magic, contentHash, filePath, objectKey, fileStat{size,mtimeNs},
    partSize, uploadId, parts[], partStatus[], uploadedParts[]{number,etag}
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional
from uuid import uuid4

from objectmesh.core import constants as C
from objectmesh.core.types import ByteRange, Result, Ok, Err
from objectmesh.core.errors import (
    CheckpointError,
    ConfigurationError,
    ObjectMeshError,
    TransferError,
)
from objectmesh.storage.protocols import ObjectClient, ObjectStat, UploadedPart
from objectmesh.core.checksum import combine_crc32c
from objectmesh.transfer.partitioner import Part, plan_parts, resolve_span

logger = logging.getLogger(__name__)


def default_checkpoint_path(
    local_path: str,
    object_key: str,
    checkpoint_dir: Optional[Path] = None,
) -> str:
    """
    Checkpoint location for a transfer.

    Without a directory the checkpoint sits next to the local file as
    `<local_path>.cp`. With a directory the name is derived from both ends
    of the transfer so that distinct transfers never share a file.
    """
    if checkpoint_dir is None:
        return local_path + C.CHECKPOINT_FILE_SUFFIX
    src = hashlib.md5(object_key.encode("utf-8")).hexdigest()
    dst = hashlib.md5(os.path.abspath(local_path).encode("utf-8")).hexdigest()
    return str(Path(checkpoint_dir) / f"{src}-{dst}{C.CHECKPOINT_FILE_SUFFIX}")


def _write_atomic(path: str, payload: bytes) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.{uuid4().hex[:8]}.tmp"
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, C.FILE_PERM_MODE)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


async def remove_checkpoint(path: str) -> None:
    """Delete a checkpoint file; a missing or undeletable file is only logged."""
    try:
        await asyncio.to_thread(os.remove, path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("Could not remove checkpoint %s: %s", path, e)


# =============================================================================
# BASE CHECKPOINT
# =============================================================================
@dataclass
class TransferCheckpoint:
    """
    State shared by download and upload checkpoints.

    Single writer: only the orchestrator that owns the transfer mutates
    and dumps it.
    """

    MAGIC: ClassVar[str] = ""

    magic: str = ""
    content_hash: str = ""
    file_path: str = ""
    object_key: str = ""
    parts: list[Part] = field(default_factory=list)
    part_status: list[bool] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # SERIALIZATION
    # -------------------------------------------------------------------------

    def _extra_fields(self) -> dict[str, Any]:
        return {}

    def _apply_extra_fields(self, data: dict[str, Any]) -> None:
        pass

    def to_dict(self) -> dict[str, Any]:
        data = {
            "magic": self.magic,
            "contentHash": self.content_hash,
            "filePath": self.file_path,
            "objectKey": self.object_key,
            "parts": [p.to_dict() for p in self.parts],
            "partStatus": list(self.part_status),
        }
        data.update(self._extra_fields())
        return data

    def compute_hash(self) -> str:
        """Base64 MD5 of the canonical JSON of every field but the hash."""
        data = self.to_dict()
        del data["contentHash"]
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return base64.b64encode(hashlib.md5(canonical.encode("utf-8")).digest()).decode("ascii")

    def integrity_error(self, path: str) -> Optional[CheckpointError]:
        """Magic, shape and content hash checks; no I/O."""
        if self.magic != self.MAGIC:
            return CheckpointError.corrupted(path, f"magic {self.magic!r}")
        if len(self.part_status) != len(self.parts):
            return CheckpointError.corrupted(
                path, f"{len(self.part_status)} status flags for {len(self.parts)} parts",
            )
        if self.content_hash != self.compute_hash():
            return CheckpointError.corrupted(path, "content hash mismatch")
        return None

    def is_intact(self) -> bool:
        return self.integrity_error("") is None

    async def load(self, path: str) -> Result[None, CheckpointError]:
        """Replace this checkpoint's state with the file at `path`."""
        try:
            raw = await asyncio.to_thread(_read_bytes, path)
            data = json.loads(raw)
            self.magic = str(data["magic"])
            self.content_hash = str(data["contentHash"])
            self.file_path = str(data["filePath"])
            self.object_key = str(data["objectKey"])
            self.parts = [Part.from_dict(p) for p in data["parts"]]
            self.part_status = [bool(s) for s in data["partStatus"]]
            self._apply_extra_fields(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            return Err(CheckpointError.load_failed(path, e))
        return Ok(None)

    async def dump(self, path: str) -> Result[None, CheckpointError]:
        """Recompute the content hash and atomically replace the file."""
        self.content_hash = self.compute_hash()
        payload = json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")
        try:
            await asyncio.to_thread(_write_atomic, path, payload)
        except OSError as e:
            return Err(CheckpointError.dump_failed(path, e))
        return Ok(None)

    # -------------------------------------------------------------------------
    # PROGRESS
    # -------------------------------------------------------------------------

    def todo_parts(self) -> list[Part]:
        """Parts not yet completed, in index order."""
        return [p for p, done in zip(self.parts, self.part_status) if not done]

    def completed_bytes(self) -> int:
        return sum(p.length for p, done in zip(self.parts, self.part_status) if done)

    def total_bytes(self) -> int:
        return sum(p.length for p in self.parts)

    def mark_completed(self, part: Part) -> None:
        self.part_status[part.index] = True

    @property
    def is_complete(self) -> bool:
        return all(self.part_status)


# =============================================================================
# DOWNLOAD CHECKPOINT
# =============================================================================
@dataclass
class DownloadCheckpoint(TransferCheckpoint):
    """Checkpoint of a ranged, multipart download into a local file."""

    MAGIC: ClassVar[str] = C.DOWNLOAD_CHECKPOINT_MAGIC

    object_stat: Optional[ObjectStat] = None
    span_start: int = 0
    span_end: int = -1
    part_crcs: list[int] = field(default_factory=list)

    def _extra_fields(self) -> dict[str, Any]:
        return {
            "objectStat": self.object_stat.to_dict() if self.object_stat else None,
            "spanStart": self.span_start,
            "spanEnd": self.span_end,
            "partCrcs": list(self.part_crcs),
        }

    def _apply_extra_fields(self, data: dict[str, Any]) -> None:
        stat = data["objectStat"]
        self.object_stat = ObjectStat.from_dict(stat) if stat is not None else None
        self.span_start = int(data["spanStart"])
        self.span_end = int(data["spanEnd"])
        self.part_crcs = [int(c) for c in data["partCrcs"]]

    async def prepare(
        self,
        client: ObjectClient,
        object_key: str,
        file_path: str,
        part_size: int,
        byte_range: Optional[ByteRange] = None,
    ) -> Result[None, ObjectMeshError]:
        """Stat the object and build a fresh plan with no part completed."""
        match await client.head_object(object_key):
            case Err() as err:
                return err
            case Ok(stat):
                pass

        span_start, span_end = resolve_span(byte_range, stat.size)
        self.magic = self.MAGIC
        self.file_path = file_path
        self.object_key = object_key
        self.object_stat = stat
        self.span_start = span_start
        self.span_end = span_end
        self.parts = plan_parts(span_start, span_end, part_size)
        self.part_status = [False] * len(self.parts)
        self.part_crcs = [0] * len(self.parts)
        self.content_hash = ""
        return Ok(None)

    async def is_valid(
        self,
        client: ObjectClient,
        object_key: str,
        byte_range: Optional[ByteRange] = None,
    ) -> Result[bool, ObjectMeshError]:
        """
        Check integrity, then freshness against the live object.

        Returns Ok(False) on any mismatch; Err only if the stat fails.
        """
        if (
            not self.is_intact()
            or self.object_stat is None
            or self.object_key != object_key
            or len(self.part_crcs) != len(self.parts)
        ):
            return Ok(False)

        match await client.head_object(object_key):
            case Err() as err:
                return err
            case Ok(stat):
                pass

        if stat != self.object_stat:
            logger.info("Object %s changed since checkpoint was written", object_key)
            return Ok(False)

        if resolve_span(byte_range, stat.size) != (self.span_start, self.span_end):
            return Ok(False)
        return Ok(True)

    def mark_downloaded(self, part: Part, crc: int) -> None:
        self.mark_completed(part)
        self.part_crcs[part.index] = crc

    def combined_crc32c(self) -> int:
        """CRC32C of the whole span, folded from the per-part values."""
        return combine_crc32c((crc, p.length) for p, crc in zip(self.parts, self.part_crcs))

    async def complete(
        self,
        checkpoint_path: Optional[str],
        working_path: str,
    ) -> Result[None, TransferError]:
        """Move the working file onto the destination and drop the checkpoint."""
        try:
            await asyncio.to_thread(os.replace, working_path, self.file_path)
        except OSError as e:
            return Err(TransferError.assembly_failed(self.file_path, e))
        if checkpoint_path:
            await remove_checkpoint(checkpoint_path)
        return Ok(None)


# =============================================================================
# UPLOAD CHECKPOINT
# =============================================================================
@dataclass(frozen=True, slots=True)
class FileStat:
    """Identity of a local source file."""
    size: int
    mtime_ns: int

    def to_dict(self) -> dict[str, int]:
        return {"size": self.size, "mtimeNs": self.mtime_ns}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileStat:
        return cls(size=int(data["size"]), mtime_ns=int(data["mtimeNs"]))

    @classmethod
    def of(cls, path: str) -> FileStat:
        st = os.stat(path)
        return cls(size=st.st_size, mtime_ns=st.st_mtime_ns)


async def stat_local_file(path: str) -> Result[FileStat, ConfigurationError]:
    """Stat a regular file; anything else is reported as not found."""
    try:
        is_file = await asyncio.to_thread(os.path.isfile, path)
        if not is_file:
            return Err(ConfigurationError.file_not_found(path))
        return Ok(await asyncio.to_thread(FileStat.of, path))
    except OSError:
        return Err(ConfigurationError.file_not_found(path))


@dataclass
class UploadCheckpoint(TransferCheckpoint):
    """Checkpoint of a multipart upload session fed from a local file."""

    MAGIC: ClassVar[str] = C.UPLOAD_CHECKPOINT_MAGIC

    file_stat: Optional[FileStat] = None
    part_size: int = 0
    upload_id: str = ""
    uploaded_parts: dict[int, str] = field(default_factory=dict)

    def _extra_fields(self) -> dict[str, Any]:
        return {
            "fileStat": self.file_stat.to_dict() if self.file_stat else None,
            "partSize": self.part_size,
            "uploadId": self.upload_id,
            "uploadedParts": [
                {"number": n, "etag": e} for n, e in sorted(self.uploaded_parts.items())
            ],
        }

    def _apply_extra_fields(self, data: dict[str, Any]) -> None:
        stat = data["fileStat"]
        self.file_stat = FileStat.from_dict(stat) if stat is not None else None
        self.part_size = int(data["partSize"])
        self.upload_id = str(data["uploadId"])
        self.uploaded_parts = {
            int(p["number"]): str(p["etag"]) for p in data["uploadedParts"]
        }

    async def prepare(
        self,
        file_path: str,
        object_key: str,
        part_size: int,
    ) -> Result[None, ObjectMeshError]:
        """
        Stat the local file and build a fresh plan.

        A zero-byte file plans no parts; the uploader creates the empty
        object when it completes the session.
        """
        match await stat_local_file(file_path):
            case Err() as err:
                return err
            case Ok(file_stat):
                pass

        self.magic = self.MAGIC
        self.file_path = file_path
        self.object_key = object_key
        self.file_stat = file_stat
        self.part_size = part_size
        self.upload_id = ""
        self.uploaded_parts = {}
        self.parts = plan_parts(0, file_stat.size - 1, part_size)
        self.part_status = [False] * len(self.parts)
        self.content_hash = ""
        return Ok(None)

    async def is_valid(
        self,
        file_path: str,
        object_key: str,
        part_size: int,
    ) -> Result[bool, ObjectMeshError]:
        """Integrity, session and local file identity checks."""
        if (
            not self.is_intact()
            or self.file_stat is None
            or not self.upload_id
            or self.file_path != file_path
            or self.object_key != object_key
            or self.part_size != part_size
        ):
            return Ok(False)

        match await stat_local_file(file_path):
            case Err() as err:
                return err
            case Ok(file_stat):
                pass

        if file_stat != self.file_stat:
            logger.info("Local file %s changed since checkpoint was written", file_path)
            return Ok(False)
        return Ok(True)

    def mark_uploaded(self, part: Part, etag: str) -> None:
        self.mark_completed(part)
        self.uploaded_parts[part.number] = etag

    def uploaded_list(self) -> list[UploadedPart]:
        """Receipts of uploaded parts, sorted by part number."""
        return [
            UploadedPart(number=n, etag=e) for n, e in sorted(self.uploaded_parts.items())
        ]
