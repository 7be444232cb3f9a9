"""
Transfer module: the multipart transfer engine.

- partitioner: byte-range plan of a transfer
- checkpoint: durable per-part progress for resume
- pool: bounded concurrent part workers with cooperative cancellation
- download / upload: orchestrators tying the pieces together
"""

from objectmesh.transfer.partitioner import (
    Part,
    partition,
    plan_parts,
    resolve_span,
    total_bytes,
)
from objectmesh.transfer.checkpoint import (
    TransferCheckpoint,
    DownloadCheckpoint,
    UploadCheckpoint,
    FileStat,
    default_checkpoint_path,
)
from objectmesh.transfer.pool import WorkerPool, CompletedPart
from objectmesh.transfer.base import (
    TransferState,
    TransferSummary,
    TransferOrchestrator,
)
from objectmesh.transfer.download import Downloader, discard_download
from objectmesh.transfer.upload import Uploader

__all__ = [
    "Part",
    "partition",
    "plan_parts",
    "resolve_span",
    "total_bytes",
    "TransferCheckpoint",
    "DownloadCheckpoint",
    "UploadCheckpoint",
    "FileStat",
    "default_checkpoint_path",
    "WorkerPool",
    "CompletedPart",
    "TransferState",
    "TransferSummary",
    "TransferOrchestrator",
    "Downloader",
    "discard_download",
    "Uploader",
]
