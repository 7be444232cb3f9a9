"""
Transfer Orchestration: Shared Lifecycle of Downloads and Uploads

States:
    INITIALIZING -> Arguments validated, checkpoint being inspected
    RESUMING     -> A valid checkpoint was found; only missing parts run
    FRESH        -> No usable checkpoint; a new plan was built
    IN_PROGRESS  -> Worker pool running
    COMPLETED    -> All parts done and the result assembled
    FAILED       -> A part or the assembly step failed

Transitions:
    INITIALIZING -> RESUMING | FRESH
    RESUMING     -> IN_PROGRESS
    FRESH        -> IN_PROGRESS
    IN_PROGRESS  -> COMPLETED | FAILED

The part loop (`drain_pool`) implements first-error-wins: the first failed
part cancels the pool and is the error of the run, while parts already in
flight keep landing in the checkpoint until every worker has exited.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Optional, Union

from objectmesh.core import constants as C
from objectmesh.core.types import Result, Ok, Err, Timestamp
from objectmesh.core.config import TransferConfig
from objectmesh.core.errors import ConfigurationError, ObjectMeshError
from objectmesh.observability.metrics import MetricsCollector, TransferMetrics
from objectmesh.observability.progress import (
    ProgressEventType,
    ProgressListener,
    publish_progress,
)
from objectmesh.storage.protocols import ObjectClient
from objectmesh.transfer.checkpoint import default_checkpoint_path
from objectmesh.transfer.pool import CompletedPart, PartHook, WorkerPool

logger = logging.getLogger(__name__)

CheckpointOption = Union[bool, str, None]


# =============================================================================
# STATE MACHINE
# =============================================================================
class TransferState(Enum):
    """Lifecycle states of one transfer run."""
    INITIALIZING = auto()
    RESUMING = auto()
    FRESH = auto()
    IN_PROGRESS = auto()
    COMPLETED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.COMPLETED, TransferState.FAILED)


VALID_TRANSITIONS: frozenset[tuple[TransferState, TransferState]] = frozenset({
    (TransferState.INITIALIZING, TransferState.RESUMING),
    (TransferState.INITIALIZING, TransferState.FRESH),
    (TransferState.RESUMING, TransferState.IN_PROGRESS),
    (TransferState.FRESH, TransferState.IN_PROGRESS),
    (TransferState.IN_PROGRESS, TransferState.COMPLETED),
    (TransferState.IN_PROGRESS, TransferState.FAILED),
})


@dataclass(frozen=True, slots=True)
class TransferSummary:
    """
    Outcome of a successful transfer.

    Attributes:
        total_bytes: Length of the whole transfer span.
        transferred_bytes: Bytes moved by this run (excludes resumed parts).
        parts_transferred: Parts moved by this run.
        resumed: True when a valid checkpoint was picked up.
        etag: ETag of the remote object (source or created object).
    """
    transfer_id: str
    direction: str
    object_key: str
    file_path: str
    total_bytes: int
    transferred_bytes: int
    parts_total: int
    parts_transferred: int
    resumed: bool
    elapsed_seconds: float
    etag: str = ""


@dataclass
class TransferRun:
    """Mutable bookkeeping of one transfer run."""

    transfer_id: str
    direction: str
    object_key: str
    file_path: str
    state: TransferState = TransferState.INITIALIZING
    started: Timestamp = field(default_factory=Timestamp.now)
    total_bytes: int = 0
    consumed_bytes: int = 0
    transferred_bytes: int = 0
    parts_transferred: int = 0
    resumed: bool = False
    history: list[TransferState] = field(default_factory=lambda: [TransferState.INITIALIZING])

    def advance(self, to_state: TransferState) -> None:
        """
        Move to `to_state`.

        Raises:
            RuntimeError: On a transition outside VALID_TRANSITIONS.
        """
        if (self.state, to_state) not in VALID_TRANSITIONS:
            raise RuntimeError(f"Invalid transfer transition {self.state.name} -> {to_state.name}")
        logger.info("Transfer %s: %s -> %s", self.transfer_id, self.state.name, to_state.name)
        self.state = to_state
        self.history.append(to_state)

    def summary(self, parts_total: int, etag: str = "") -> TransferSummary:
        return TransferSummary(
            transfer_id=self.transfer_id,
            direction=self.direction,
            object_key=self.object_key,
            file_path=self.file_path,
            total_bytes=self.total_bytes,
            transferred_bytes=self.transferred_bytes,
            parts_total=parts_total,
            parts_transferred=self.parts_transferred,
            resumed=self.resumed,
            elapsed_seconds=self.started.elapsed_seconds(),
            etag=etag,
        )


# =============================================================================
# ORCHESTRATOR BASE
# =============================================================================
class TransferOrchestrator:
    """
    Collaborators and policies shared by Downloader and Uploader.

    Args:
        client: Object client (see objectmesh.storage.protocols).
        config: Part sizing, concurrency and checkpoint defaults.
        metrics: Metrics registry; defaults to the process-wide collector.
        part_hook: Called before every part transfer. Returning Err fails
            that part, which makes failure points reproducible in tests.
    """

    DIRECTION = ""

    def __init__(
        self,
        client: ObjectClient,
        config: Optional[TransferConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        part_hook: Optional[PartHook] = None,
    ) -> None:
        self._client = client
        self._config = config or TransferConfig()
        self._metrics = TransferMetrics(metrics)
        self._part_hook = part_hook

    @property
    def config(self) -> TransferConfig:
        return self._config

    def _resolve_part_size(self, part_size: Optional[int]) -> Result[int, ConfigurationError]:
        size = self._config.part_size if part_size is None else part_size
        if not (self._config.min_part_size <= size <= self._config.max_part_size):
            return Err(ConfigurationError.invalid_part_size(
                size, self._config.min_part_size, self._config.max_part_size,
            ))
        return Ok(size)

    def _resolve_checkpoint_path(
        self,
        local_path: str,
        object_key: str,
        checkpoint: CheckpointOption,
    ) -> Optional[str]:
        """
        None follows the configuration, False disables checkpointing,
        True uses the default location and a string is an explicit path.
        """
        if isinstance(checkpoint, str):
            return checkpoint
        enabled = self._config.checkpoint_enabled if checkpoint is None else checkpoint
        if not enabled:
            return None
        return default_checkpoint_path(local_path, object_key, self._config.checkpoint_dir)

    def _new_pool(self, transfer_fn: Callable[..., Awaitable[Any]], object_key: str) -> WorkerPool:
        return WorkerPool(
            self._config.routines,
            transfer_fn,
            part_hook=self._part_hook,
            label=object_key,
        )

    async def drain_pool(
        self,
        pool: WorkerPool,
        parts: list,
        run: TransferRun,
        progress: Optional[ProgressListener],
        on_success: Callable[[CompletedPart], Awaitable[None]],
    ) -> Optional[ObjectMeshError]:
        """
        Run `parts` through `pool` and record outcomes.

        Returns the first part error, or None when every part succeeded.
        """
        first_error: Optional[ObjectMeshError] = None

        async with aclosing(pool.run(parts)) as outcomes:
            async for outcome in outcomes:
                match outcome:
                    case Ok(done):
                        run.consumed_bytes += done.part.length
                        run.transferred_bytes += done.part.length
                        run.parts_transferred += 1
                        self._metrics.part_done(self.DIRECTION, done.part.length, done.elapsed_seconds)
                        await on_success(done)
                        publish_progress(
                            progress, ProgressEventType.DATA, run.consumed_bytes, run.total_bytes,
                        )
                    case Err(error):
                        self._metrics.part_failed(self.DIRECTION)
                        if first_error is None:
                            first_error = error
                            logger.error("Part failed, cancelling transfer: %s", error)
                            pool.cancel()
                            publish_progress(
                                progress, ProgressEventType.FAILED,
                                run.consumed_bytes, run.total_bytes,
                            )
                        else:
                            logger.warning("Additional part failure dropped: %s", error)

        return first_error


def part_count_within_limit(size: int, part_size: int) -> Result[int, ConfigurationError]:
    """Number of upload parts for `size` bytes, bounded by MAX_PART_NUMBER."""
    count = max(1, -(-size // part_size))
    if count > C.MAX_PART_NUMBER:
        return Err(ConfigurationError.too_many_parts(count, C.MAX_PART_NUMBER))
    return Ok(count)
