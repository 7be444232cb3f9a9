"""
Multipart Upload: Concurrent, Resumable Upload of a Local File

The local file is split into parts that the worker pool uploads into one
multipart session. Completing the session with the part receipts, sorted
by part number, creates the object.
A zero-byte file plans no parts; its empty object is created when the
session is completed.

With checkpointing enabled the session id and every part receipt are
persisted, so a later call resumes the same session with only the
missing parts as long as the local file is unchanged (size and mtime)
and the part size is the same. Without checkpointing a failed upload
aborts its session, since nothing could resume it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional
from uuid import uuid4

from objectmesh.core.types import Result, Ok, Err
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
from objectmesh.storage.protocols import ObjectStat, UploadedPart
from objectmesh.transfer.base import (
    CheckpointOption,
    TransferOrchestrator,
    TransferRun,
    TransferState,
    TransferSummary,
    part_count_within_limit,
)
from objectmesh.transfer.checkpoint import (
    UploadCheckpoint,
    remove_checkpoint,
    stat_local_file,
)
from objectmesh.transfer.partitioner import Part
from objectmesh.transfer.pool import CompletedPart

logger = logging.getLogger(__name__)


def _read_range(path: str, position: int, length: int) -> bytes:
    with open(path, "rb") as fh:
        fh.seek(position)
        return fh.read(length)


class Uploader(TransferOrchestrator):
    """
    Upload orchestrator.

    Example:
        uploader = Uploader(store, TransferConfig(part_size=16 * MB))
        result = await uploader.upload_file("/data/a.mp4", "videos/a.mp4")
    """

    DIRECTION = "upload"

    async def upload_file(
        self,
        file_path: str,
        object_key: str,
        part_size: Optional[int] = None,
        checkpoint: CheckpointOption = None,
        progress: Optional[ProgressListener] = None,
        content_type: Optional[str] = None,
    ) -> Result[TransferSummary, ObjectMeshError]:
        """
        Upload `file_path` as `object_key`.

        Args:
            part_size: Bytes per part; defaults to the configured size.
            checkpoint: None follows configuration, False disables, True
                uses `<file_path>.cp`, a string is an explicit path.
            progress: Listener for STARTED/DATA/COMPLETED/FAILED events.
            content_type: Content-Type of the created object.

        Returns:
            Ok(TransferSummary) or Err with the first error of the run.
        """
        if not object_key:
            return Err(ConfigurationError.empty_object_key())
        match self._resolve_part_size(part_size):
            case Err() as err:
                return err
            case Ok(size):
                pass
        match await stat_local_file(file_path):
            case Err() as err:
                return err
            case Ok(file_stat):
                pass
        limit = part_count_within_limit(file_stat.size, size)
        if limit.is_err():
            return limit

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
                return await self._upload(run, size, checkpoint_path, progress, content_type)
            finally:
                self._metrics.inflight.dec(direction=self.DIRECTION)

    async def _abort_session(self, object_key: str, upload_id: str) -> None:
        aborted = await self._client.abort_multipart_upload(object_key, upload_id)
        if aborted.is_err():
            logger.warning("Could not abort upload %s: %s", upload_id, aborted.error)
        else:
            logger.info("Aborted upload %s", upload_id)

    async def _complete_session(
        self,
        object_key: str,
        upload_id: str,
        cp: UploadCheckpoint,
    ) -> Result[ObjectStat, ObjectMeshError]:
        """Complete with the recorded receipts; an empty file sends one empty part."""
        receipts = cp.uploaded_list()
        if not cp.parts:
            match await self._client.upload_part(object_key, upload_id, 1, b""):
                case Err() as err:
                    return err
                case Ok(receipt):
                    receipts = [receipt]
        return await self._client.complete_multipart_upload(object_key, upload_id, receipts)

    async def _load_checkpoint(
        self,
        run: TransferRun,
        part_size: int,
        checkpoint_path: Optional[str],
    ) -> Result[Optional[UploadCheckpoint], ObjectMeshError]:
        """
        Existing checkpoint if it can be resumed.

        A stale upload checkpoint for the same object still names an open
        session; that session is aborted before starting over.
        """
        if checkpoint_path is None:
            return Ok(None)
        if not await asyncio.to_thread(os.path.exists, checkpoint_path):
            return Ok(None)

        cp = UploadCheckpoint()
        loaded = await cp.load(checkpoint_path)
        if loaded.is_err():
            logger.warning("Discarding unreadable checkpoint: %s", loaded.error)
            return Ok(None)
        damaged = cp.integrity_error(checkpoint_path)
        if damaged is not None:
            logger.warning("Discarding checkpoint: %s", damaged)
            return Ok(None)

        match await cp.is_valid(run.file_path, run.object_key, part_size):
            case Err() as err:
                return err
            case Ok(valid):
                pass

        if valid:
            return Ok(cp)

        logger.info("Checkpoint %s is stale, starting over", checkpoint_path)
        if cp.is_intact() and cp.upload_id and cp.object_key == run.object_key:
            await self._abort_session(cp.object_key, cp.upload_id)
        return Ok(None)

    async def _upload(
        self,
        run: TransferRun,
        part_size: int,
        checkpoint_path: Optional[str],
        progress: Optional[ProgressListener],
        content_type: Optional[str],
    ) -> Result[TransferSummary, ObjectMeshError]:
        match await self._load_checkpoint(run, part_size, checkpoint_path):
            case Err() as err:
                return err
            case Ok(existing):
                pass

        if existing is not None:
            cp = existing
            run.resumed = True
            run.advance(TransferState.RESUMING)
        else:
            cp = UploadCheckpoint()
            prepared = await cp.prepare(run.file_path, run.object_key, part_size)
            if prepared.is_err():
                return prepared

            match await self._client.initiate_multipart_upload(run.object_key, content_type):
                case Err() as err:
                    return err
                case Ok(upload_id):
                    cp.upload_id = upload_id
            logger.info("Initiated upload %s", cp.upload_id)

            if checkpoint_path is not None:
                dumped = await cp.dump(checkpoint_path)
                if dumped.is_err():
                    await self._abort_session(run.object_key, cp.upload_id)
                    return dumped
            run.advance(TransferState.FRESH)

        upload_id = cp.upload_id
        run.total_bytes = cp.total_bytes()
        run.consumed_bytes = cp.completed_bytes()
        publish_progress(progress, ProgressEventType.STARTED, run.consumed_bytes, run.total_bytes)
        run.advance(TransferState.IN_PROGRESS)

        todo = cp.todo_parts()
        logger.info(
            "Uploading %d of %d parts (%d bytes) with %d workers",
            len(todo), len(cp.parts), run.total_bytes, self._config.routines,
        )

        async def send(part: Part) -> Result[UploadedPart, ObjectMeshError]:
            data = await asyncio.to_thread(_read_range, run.file_path, part.start, part.length)
            if len(data) != part.length:
                return Err(TransferError.short_read(part.index, part.length, len(data)))
            return await self._client.upload_part(run.object_key, upload_id, part.number, data)

        async def record(done: CompletedPart) -> None:
            cp.mark_uploaded(done.part, done.value.etag)
            if checkpoint_path is not None:
                dumped = await cp.dump(checkpoint_path)
                if dumped.is_err():
                    logger.warning("Checkpoint not updated: %s", dumped.error)

        pool = self._new_pool(send, run.object_key)
        error = await self.drain_pool(pool, todo, run, progress, record)

        if error is not None:
            run.advance(TransferState.FAILED)
            if checkpoint_path is None:
                await self._abort_session(run.object_key, upload_id)
            return Err(error)

        publish_progress(progress, ProgressEventType.COMPLETED, run.consumed_bytes, run.total_bytes)

        match await self._complete_session(run.object_key, upload_id, cp):
            case Err(cause):
                run.advance(TransferState.FAILED)
                if checkpoint_path is None:
                    await self._abort_session(run.object_key, upload_id)
                failure = TransferError.session_failed(run.object_key, upload_id, str(cause))
                failure.cause = cause
                return Err(failure)
            case Ok(stat):
                pass

        if checkpoint_path is not None:
            await remove_checkpoint(checkpoint_path)
        run.advance(TransferState.COMPLETED)
        return Ok(run.summary(len(cp.parts), stat.etag))
