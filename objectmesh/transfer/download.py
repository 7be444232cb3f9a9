"""
Multipart Download: Concurrent, Resumable Ranged Download to a Local File

Parts are fetched with ranged GETs by the worker pool and written at
their own offset of a working file `<file_path>.temp`. When every part
has landed, the working file is renamed onto `file_path`.

With checkpointing enabled the per-part progress is persisted after
every completed part; a later call with the same arguments resumes with
only the missing parts, provided the remote object is unchanged (size,
Last-Modified and ETag).

When the store reports a CRC32C for the object and the whole object was
requested, the per-part CRCs are combined and compared with it before
the working file is renamed.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional
from uuid import uuid4

from objectmesh.core import constants as C
from objectmesh.core.types import ByteRange, Result, Ok, Err
from objectmesh.core.errors import (
    ConfigurationError,
    ObjectMeshError,
    TransferError,
)
from objectmesh.observability.logging import StructuredLogger
from objectmesh.observability.progress import (
    ProgressEventType,
    ProgressListener,
    publish_progress,
)
from objectmesh.transfer.base import (
    CheckpointOption,
    TransferOrchestrator,
    TransferRun,
    TransferState,
    TransferSummary,
)
from objectmesh.transfer.checkpoint import DownloadCheckpoint, remove_checkpoint
from objectmesh.core.checksum import crc32c_of, encode_crc32c
from objectmesh.transfer.partitioner import Part
from objectmesh.transfer.pool import CompletedPart

logger = logging.getLogger(__name__)


def _open_working_file(path: str, truncate: bool) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    # "ab" creates without truncating so resumed parts survive
    with open(path, "wb" if truncate else "ab"):
        pass


def _write_at(path: str, position: int, data: bytes) -> None:
    with open(path, "r+b") as fh:
        fh.seek(position)
        fh.write(data)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class Downloader(TransferOrchestrator):
    """
    Download orchestrator.

    Example:
        downloader = Downloader(store, TransferConfig(routines=4))
        result = await downloader.download_file("videos/a.mp4", "/data/a.mp4")
    """

    DIRECTION = "download"

    async def download_file(
        self,
        object_key: str,
        file_path: str,
        part_size: Optional[int] = None,
        byte_range: Optional[ByteRange] = None,
        checkpoint: CheckpointOption = None,
        progress: Optional[ProgressListener] = None,
    ) -> Result[TransferSummary, ObjectMeshError]:
        """
        Download `object_key` (or `byte_range` of it) into `file_path`.

        Args:
            part_size: Bytes per part; defaults to the configured size.
            byte_range: Optional sub-range; invalid ranges select the
                whole object.
            checkpoint: None follows configuration, False disables, True
                uses `<file_path>.cp`, a string is an explicit path.
            progress: Listener for STARTED/DATA/COMPLETED/FAILED events.

        Returns:
            Ok(TransferSummary) or Err with the first error of the run.
        """
        if not object_key:
            return Err(ConfigurationError.empty_object_key())
        if not file_path:
            return Err(ConfigurationError.invalid_value("file_path", "must not be empty"))
        match self._resolve_part_size(part_size):
            case Err() as err:
                return err
            case Ok(size):
                pass

        run = TransferRun(
            transfer_id=uuid4().hex[:12],
            direction=self.DIRECTION,
            object_key=object_key,
            file_path=file_path,
        )
        checkpoint_path = self._resolve_checkpoint_path(file_path, object_key, checkpoint)

        with StructuredLogger.context(transfer_id=run.transfer_id, object_key=object_key):
            self._metrics.inflight.inc(direction=self.DIRECTION)
            try:
                return await self._download(run, size, byte_range, checkpoint_path, progress)
            finally:
                self._metrics.inflight.dec(direction=self.DIRECTION)

    async def _load_checkpoint(
        self,
        run: TransferRun,
        checkpoint_path: Optional[str],
        byte_range: Optional[ByteRange],
    ) -> Result[Optional[DownloadCheckpoint], ObjectMeshError]:
        """Existing checkpoint if it is intact, fresh and for this file."""
        if checkpoint_path is None:
            return Ok(None)
        if not await asyncio.to_thread(os.path.exists, checkpoint_path):
            return Ok(None)

        cp = DownloadCheckpoint()
        loaded = await cp.load(checkpoint_path)
        if loaded.is_err():
            logger.warning("Discarding unreadable checkpoint: %s", loaded.error)
            return Ok(None)
        damaged = cp.integrity_error(checkpoint_path)
        if damaged is not None:
            logger.warning("Discarding checkpoint: %s", damaged)
            return Ok(None)

        match await cp.is_valid(self._client, run.object_key, byte_range):
            case Err() as err:
                return err
            case Ok(valid):
                pass

        if not valid or cp.file_path != run.file_path:
            logger.info("Checkpoint %s is stale, starting over", checkpoint_path)
            return Ok(None)

        working_path = run.file_path + C.TEMP_FILE_SUFFIX
        if cp.completed_bytes() and not await asyncio.to_thread(os.path.exists, working_path):
            logger.info("Working file %s is gone, starting over", working_path)
            return Ok(None)
        return Ok(cp)

    async def _download(
        self,
        run: TransferRun,
        part_size: int,
        byte_range: Optional[ByteRange],
        checkpoint_path: Optional[str],
        progress: Optional[ProgressListener],
    ) -> Result[TransferSummary, ObjectMeshError]:
        working_path = run.file_path + C.TEMP_FILE_SUFFIX

        match await self._load_checkpoint(run, checkpoint_path, byte_range):
            case Err() as err:
                return err
            case Ok(existing):
                pass

        if existing is not None:
            cp = existing
            run.resumed = True
            run.advance(TransferState.RESUMING)
        else:
            cp = DownloadCheckpoint()
            prepared = await cp.prepare(
                self._client, run.object_key, run.file_path, part_size, byte_range,
            )
            if prepared.is_err():
                return prepared
            if checkpoint_path is not None:
                dumped = await cp.dump(checkpoint_path)
                if dumped.is_err():
                    return dumped
            run.advance(TransferState.FRESH)

        try:
            await asyncio.to_thread(_open_working_file, working_path, not run.resumed)
        except OSError as e:
            return Err(TransferError.assembly_failed(working_path, e))

        run.total_bytes = cp.total_bytes()
        run.consumed_bytes = cp.completed_bytes()
        publish_progress(progress, ProgressEventType.STARTED, run.consumed_bytes, run.total_bytes)
        run.advance(TransferState.IN_PROGRESS)

        todo = cp.todo_parts()
        logger.info(
            "Downloading %d of %d parts (%d bytes) with %d workers",
            len(todo), len(cp.parts), run.total_bytes, self._config.routines,
        )

        async def fetch(part: Part) -> Result[int, ObjectMeshError]:
            match await self._client.get_object_range(run.object_key, part.start, part.end):
                case Err() as err:
                    return err
                case Ok(data):
                    pass
            if len(data) != part.length:
                return Err(TransferError.short_read(part.index, part.length, len(data)))
            await asyncio.to_thread(_write_at, working_path, part.local_offset, data)
            return Ok(crc32c_of(data))

        async def record(done: CompletedPart) -> None:
            cp.mark_downloaded(done.part, done.value)
            if checkpoint_path is not None:
                dumped = await cp.dump(checkpoint_path)
                if dumped.is_err():
                    logger.warning("Checkpoint not updated: %s", dumped.error)

        pool = self._new_pool(fetch, run.object_key)
        error = await self.drain_pool(pool, todo, run, progress, record)

        if error is not None:
            run.advance(TransferState.FAILED)
            if checkpoint_path is None:
                await asyncio.to_thread(_remove_quietly, working_path)
            return Err(error)

        mismatch = self._verify_checksum(cp)
        if mismatch is not None:
            logger.error("Discarding download: %s", mismatch)
            run.advance(TransferState.FAILED)
            await asyncio.to_thread(_remove_quietly, working_path)
            if checkpoint_path is not None:
                await remove_checkpoint(checkpoint_path)
            publish_progress(progress, ProgressEventType.FAILED, run.consumed_bytes, run.total_bytes)
            return Err(mismatch)

        publish_progress(progress, ProgressEventType.COMPLETED, run.consumed_bytes, run.total_bytes)

        completed = await cp.complete(checkpoint_path, working_path)
        if completed.is_err():
            run.advance(TransferState.FAILED)
            return completed

        run.advance(TransferState.COMPLETED)
        etag = cp.object_stat.etag if cp.object_stat else ""
        return Ok(run.summary(len(cp.parts), etag))

    def _verify_checksum(self, cp: DownloadCheckpoint) -> Optional[TransferError]:
        """Compare the combined part CRCs with the object's CRC32C, if any."""
        stat = cp.object_stat
        if not self._config.verify_checksum or stat is None or not stat.checksum_crc32c:
            return None
        if (cp.span_start, cp.span_end) != (0, stat.size - 1):
            return None
        actual = encode_crc32c(cp.combined_crc32c())
        if actual != stat.checksum_crc32c:
            return TransferError.checksum_mismatch(cp.file_path, stat.checksum_crc32c, actual)
        logger.debug("CRC32C %s verified for %s", actual, cp.object_key)
        return None


async def discard_download(file_path: str, checkpoint_path: Optional[str] = None) -> None:
    """Remove the working file and checkpoint of an abandoned download."""
    await asyncio.to_thread(_remove_quietly, file_path + C.TEMP_FILE_SUFFIX)
    await remove_checkpoint(checkpoint_path or file_path + C.CHECKPOINT_FILE_SUFFIX)
