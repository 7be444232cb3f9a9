"""
Worker Pool: Bounded Concurrent Execution of Part Transfers

A scheduler task enqueues every part followed by one close marker per
worker. Workers pull parts until they see a close marker, the pool is
cancelled, or their own part fails. Outcomes arrive on the iterator of
`run()` in completion order, not part order.

Cancellation is cooperative: `cancel()` stops workers from starting new
parts, but a part transfer that is already running finishes and its
outcome is still delivered.

Usage:
    pool = WorkerPool(3, fetch_part, label="videos/a.mp4")
    async with aclosing(pool.run(parts)) as outcomes:
        async for outcome in outcomes:
            match outcome:
                case Ok(done):
                    record(done.part)
                case Err(error):
                    pool.cancel()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    Optional,
    TypeVar,
    Union,
)

from objectmesh.core.types import Result, Ok, Err
from objectmesh.core.errors import ObjectMeshError, TransferError
from objectmesh.transfer.partitioner import Part

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransferFn = Callable[[Part], Awaitable[Result[T, ObjectMeshError]]]
PartHook = Callable[[Part], Result[None, ObjectMeshError]]


@dataclass(frozen=True, slots=True)
class CompletedPart(Generic[T]):
    """A part whose transfer succeeded, with the transfer's return value."""
    part: Part
    value: T
    elapsed_seconds: float


# Sentinel pushed by a worker when it exits.
_WORKER_EXIT = None


class WorkerPool(Generic[T]):
    """
    Fixed-size pool of part workers.

    Args:
        worker_count: Number of concurrent workers (>= 1).
        transfer_fn: Coroutine performing one part transfer.
        part_hook: Called before each part transfer; an Err fails the
            part without calling transfer_fn.
        label: Name of the transfer, used in error messages.

    Raises:
        ValueError: If worker_count < 1.
    """

    __slots__ = ("_worker_count", "_transfer_fn", "_part_hook", "_label", "_die")

    def __init__(
        self,
        worker_count: int,
        transfer_fn: TransferFn[T],
        part_hook: Optional[PartHook] = None,
        label: str = "",
    ) -> None:
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        self._worker_count = worker_count
        self._transfer_fn = transfer_fn
        self._part_hook = part_hook
        self._label = label
        self._die = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._die.is_set()

    def cancel(self) -> None:
        """Stop handing out parts. Running transfers are not interrupted."""
        self._die.set()

    async def run(
        self,
        parts: Iterable[Part],
    ) -> AsyncIterator[Result[CompletedPart[T], ObjectMeshError]]:
        """
        Transfer `parts` and yield one outcome per attempted part.

        Parts never attempted because of cancellation yield nothing. The
        iterator ends once every worker has exited; no task outlives it.
        """
        todo = list(parts)
        if not todo:
            return

        worker_count = min(self._worker_count, len(todo))
        jobs: asyncio.Queue[Optional[Part]] = asyncio.Queue()
        outcomes: asyncio.Queue[Any] = asyncio.Queue()

        scheduler = asyncio.create_task(self._schedule(todo, jobs, worker_count))
        workers = [
            asyncio.create_task(self._work(worker_id, jobs, outcomes))
            for worker_id in range(worker_count)
        ]

        running = worker_count
        try:
            while running:
                outcome = await outcomes.get()
                if outcome is _WORKER_EXIT:
                    running -= 1
                    continue
                yield outcome
        finally:
            if running:
                # Consumer left early
                self._die.set()
            await asyncio.gather(scheduler, *workers)

    async def _schedule(
        self,
        parts: list[Part],
        jobs: asyncio.Queue[Optional[Part]],
        worker_count: int,
    ) -> None:
        for part in parts:
            if self._die.is_set():
                break
            jobs.put_nowait(part)
        for _ in range(worker_count):
            jobs.put_nowait(None)

    async def _work(
        self,
        worker_id: int,
        jobs: asyncio.Queue[Optional[Part]],
        outcomes: asyncio.Queue[Any],
    ) -> None:
        try:
            while not self._die.is_set():
                part = await jobs.get()
                if part is None or self._die.is_set():
                    break
                outcome = await self._attempt(part)
                outcomes.put_nowait(outcome)
                if outcome.is_err():
                    break
        finally:
            outcomes.put_nowait(_WORKER_EXIT)
            logger.debug("Worker %d exited", worker_id)

    async def _attempt(self, part: Part) -> Result[CompletedPart[T], ObjectMeshError]:
        started = time.perf_counter()

        if self._part_hook is not None:
            hooked = self._part_hook(part)
            if hooked.is_err():
                return hooked

        try:
            result: Union[Ok[T], Err[ObjectMeshError]] = await self._transfer_fn(part)
        except Exception as e:
            logger.exception("Part %d of '%s' raised", part.index, self._label)
            return Err(TransferError.part_failed(part.index, self._label, e))

        match result:
            case Ok(value):
                return Ok(CompletedPart(part, value, time.perf_counter() - started))
            case Err() as err:
                return err
