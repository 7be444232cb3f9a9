"""
objectmesh: Resumable Multipart Transfers for S3-Compatible Object Storage

A concurrent, checkpointed transfer engine:
- Range Partitioner: splits an object (or a byte range of it) into parts
- Transfer Checkpoint: durable per-part progress with staleness detection
- Worker Pool: bounded concurrency with fail-fast cooperative cancellation
- Orchestrators: Downloader and Uploader tying the pieces together

Usage:
    store = InMemoryObjectStore()
    downloader = Downloader(store, TransferConfig(routines=4))
    result = await downloader.download_file("videos/a.mp4", "/data/a.mp4")

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from objectmesh.core.types import Result, Ok, Err, ByteRange, Timestamp
from objectmesh.core.errors import (
    ErrorCode,
    ObjectMeshError,
    StorageError,
    ConfigurationError,
    CheckpointError,
    TransferError,
)
from objectmesh.core.config import TransferConfig, ObservabilityConfig, ObjectMeshConfig

from objectmesh.observability import (
    MetricsCollector,
    StructuredLogger,
    LogLevel,
    setup_logging,
    ProgressEvent,
    ProgressEventType,
    ProgressListener,
    CallbackProgressListener,
)

from objectmesh.storage import (
    ObjectClient,
    ObjectStat,
    UploadedPart,
    InMemoryObjectStore,
    S3Config,
    S3ObjectStore,
)

from objectmesh.transfer import (
    Part,
    partition,
    resolve_span,
    DownloadCheckpoint,
    UploadCheckpoint,
    WorkerPool,
    TransferState,
    TransferSummary,
    Downloader,
    Uploader,
)

__all__ = [
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "ByteRange",
    "Timestamp",
    "ErrorCode",
    "ObjectMeshError",
    "StorageError",
    "ConfigurationError",
    "CheckpointError",
    "TransferError",
    "TransferConfig",
    "ObservabilityConfig",
    "ObjectMeshConfig",
    # Observability
    "MetricsCollector",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressListener",
    "CallbackProgressListener",
    # Storage
    "ObjectClient",
    "ObjectStat",
    "UploadedPart",
    "InMemoryObjectStore",
    "S3Config",
    "S3ObjectStore",
    # Transfer
    "Part",
    "partition",
    "resolve_span",
    "DownloadCheckpoint",
    "UploadCheckpoint",
    "WorkerPool",
    "TransferState",
    "TransferSummary",
    "Downloader",
    "Uploader",
]
