"""
Unit Tests: Worker Pool

Tests:
    - Every part transferred exactly once with bounded concurrency
    - Exceptions converted to part failures
    - Cooperative cancellation and part hooks
    - No task outlives the run
"""

import asyncio
from contextlib import aclosing

import pytest

from objectmesh.core.errors import ErrorCode, StorageError
from objectmesh.core.types import Ok, Err
from objectmesh.transfer.partitioner import partition
from objectmesh.transfer.pool import WorkerPool
from objectmesh.tests.helpers import FailOnce


async def collect(pool, parts):
    async with aclosing(pool.run(parts)) as outcomes:
        return [outcome async for outcome in outcomes]


class TestWorkerPool:
    """Tests for WorkerPool."""

    @pytest.mark.asyncio
    async def test_all_parts_transferred(self):
        parts = partition(0, 999, 100)

        async def transfer(part):
            await asyncio.sleep(0)
            return Ok(part.length)

        outcomes = await collect(WorkerPool(3, transfer), parts)

        assert len(outcomes) == 10
        assert all(o.is_ok() for o in outcomes)
        assert sorted(o.unwrap().part.index for o in outcomes) == list(range(10))
        assert all(o.unwrap().value == 100 for o in outcomes)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """Test no more than worker_count transfers run at once."""
        parts = partition(0, 1999, 100)
        running = 0
        peak = 0

        async def transfer(part):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.001)
            running -= 1
            return Ok(None)

        await collect(WorkerPool(4, transfer), parts)

        assert 1 < peak <= 4

    @pytest.mark.asyncio
    async def test_exception_becomes_part_failure(self):
        parts = partition(0, 99, 100)

        async def transfer(part):
            raise OSError("disk full")

        outcomes = await collect(WorkerPool(2, transfer, label="obj"), parts)

        assert len(outcomes) == 1
        assert outcomes[0].is_err()
        error = outcomes[0].error
        assert error.code == ErrorCode.TRANSFER_PART_FAILED
        assert isinstance(error.cause, OSError)
        assert error.context["part_index"] == 0

    @pytest.mark.asyncio
    async def test_err_result_passes_through(self):
        parts = partition(0, 99, 100)

        async def transfer(part):
            return Err(StorageError.object_not_found("obj"))

        outcomes = await collect(WorkerPool(1, transfer), parts)

        assert outcomes[0].error.code == ErrorCode.STORAGE_OBJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_cancel_stops_new_parts(self):
        """Test a cancelled pool hands out no further parts."""
        parts = partition(0, 999, 100)
        attempted = []

        async def transfer(part):
            attempted.append(part.index)
            if part.index == 2:
                return Err(StorageError.request_failed("GetObject", "obj"))
            return Ok(None)

        pool = WorkerPool(1, transfer)
        async with aclosing(pool.run(parts)) as outcomes:
            async for outcome in outcomes:
                if outcome.is_err():
                    pool.cancel()

        assert attempted == [0, 1, 2]
        assert pool.cancelled

    @pytest.mark.asyncio
    async def test_in_flight_part_finishes_after_cancel(self):
        """Test cancellation never interrupts a running transfer."""
        parts = partition(0, 199, 100)
        release = asyncio.Event()

        async def transfer(part):
            if part.index == 0:
                await release.wait()
                return Ok("slow")
            return Err(StorageError.request_failed("GetObject", "obj"))

        pool = WorkerPool(2, transfer)
        results = []
        async with aclosing(pool.run(parts)) as outcomes:
            async for outcome in outcomes:
                results.append(outcome)
                if outcome.is_err():
                    pool.cancel()
                    release.set()

        assert results[0].is_err()
        assert results[1].unwrap().value == "slow"

    @pytest.mark.asyncio
    async def test_part_hook_fails_part_without_transfer(self):
        parts = partition(0, 299, 100)
        hook = FailOnce([1])
        transferred = []

        async def transfer(part):
            transferred.append(part.index)
            return Ok(None)

        outcomes = await collect(WorkerPool(1, transfer, part_hook=hook), parts)

        assert 1 not in transferred
        assert sum(o.is_err() for o in outcomes) == 1
        assert hook.seen[:2] == [0, 1]

    @pytest.mark.asyncio
    async def test_empty_plan(self):
        async def transfer(part):
            return Ok(None)

        assert await collect(WorkerPool(3, transfer), []) == []

    @pytest.mark.asyncio
    async def test_no_task_outlives_early_exit(self):
        """Test leaving the iterator early still joins every worker."""
        parts = partition(0, 999, 100)

        async def transfer(part):
            await asyncio.sleep(0.001)
            return Ok(None)

        before = len(asyncio.all_tasks())
        async with aclosing(WorkerPool(3, transfer).run(parts)) as outcomes:
            async for _ in outcomes:
                break

        assert len(asyncio.all_tasks()) == before

    def test_rejects_zero_workers(self):
        async def transfer(part):
            return Ok(None)

        with pytest.raises(ValueError):
            WorkerPool(0, transfer)
