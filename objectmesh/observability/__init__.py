"""
Observability module: Metrics, structured logging and progress events.
"""

from objectmesh.observability.metrics import (
    MetricsCollector,
    Counter,
    Gauge,
    Histogram,
    TransferMetrics,
    collector_for,
)
from objectmesh.observability.logging import StructuredLogger, LogLevel, setup_logging
from objectmesh.observability.progress import (
    ProgressEventType,
    ProgressEvent,
    ProgressListener,
    CallbackProgressListener,
    RecordingProgressListener,
    publish_progress,
)

__all__ = [
    "MetricsCollector",
    "Counter",
    "Gauge",
    "Histogram",
    "TransferMetrics",
    "collector_for",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
    "ProgressEventType",
    "ProgressEvent",
    "ProgressListener",
    "CallbackProgressListener",
    "RecordingProgressListener",
    "publish_progress",
]
