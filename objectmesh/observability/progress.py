"""
Progress Events: Fan-Out of Transfer Progress to Listeners

Listeners are called inline from the orchestrator task. A listener that
raises is logged and skipped; progress reporting never fails a transfer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ProgressEventType(Enum):
    """Lifecycle of a single transfer as seen by listeners."""
    STARTED = "started"
    DATA = "data"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """
    Snapshot of transfer progress.

    Attributes:
        event_type: Lifecycle stage.
        consumed_bytes: Bytes of completed parts so far (cumulative).
        total_bytes: Length of the whole transfer span.
    """
    event_type: ProgressEventType
    consumed_bytes: int
    total_bytes: int

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 1.0 if self.event_type is ProgressEventType.COMPLETED else 0.0
        return self.consumed_bytes / self.total_bytes


@runtime_checkable
class ProgressListener(Protocol):
    """Receives progress events of a transfer."""

    def progress_changed(self, event: ProgressEvent) -> None:
        ...


class CallbackProgressListener:
    """Adapts a plain callable to the ProgressListener protocol."""

    __slots__ = ("_callback",)

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._callback = callback

    def progress_changed(self, event: ProgressEvent) -> None:
        self._callback(event)


class RecordingProgressListener:
    """Keeps every event it receives, in order."""

    __slots__ = ("events",)

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def progress_changed(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> list[ProgressEventType]:
        return [e.event_type for e in self.events]


def publish_progress(
    listener: Optional[ProgressListener],
    event_type: ProgressEventType,
    consumed_bytes: int,
    total_bytes: int,
) -> None:
    """Deliver one event to the listener, if any."""
    if listener is None:
        return
    event = ProgressEvent(event_type, consumed_bytes, total_bytes)
    try:
        listener.progress_changed(event)
    except Exception:
        logger.exception("Progress listener raised on %s event", event_type.value)
