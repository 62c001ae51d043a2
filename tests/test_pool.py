"""Tests for the bounded task pool."""
import asyncio

import pytest

from batch_uploader.orchestrator.pool import partition, run_bounded
from batch_uploader.orchestrator.scheduler import UploadScheduler

from fakes import make_files, spin


def test_partition_sizes():
    chunks = partition(list(range(137)), 50)
    assert [len(c) for c in chunks] == [50, 50, 37]
    assert chunks[2][0] == 100


def test_partition_rejects_zero():
    with pytest.raises(ValueError):
        partition([1, 2], 0)


def test_scheduler_partition_numbers_batches():
    batches = UploadScheduler.partition(make_files(137), 50)
    assert [b.number for b in batches] == [1, 2, 3]
    assert [len(b) for b in batches] == [50, 50, 37]
    assert batches[1].files[0].name == "f_050.txt"


def test_partition_empty():
    assert partition([], 5) == []


@pytest.mark.asyncio
async def test_run_bounded_respects_limit():
    running = 0
    peak = 0

    async def work(item):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0)
        running -= 1
        return item * 2

    result = await run_bounded(range(20), 3, work)

    assert peak == 3
    assert sorted(result.completed) == [i * 2 for i in range(20)]
    assert result.skipped == []


@pytest.mark.asyncio
async def test_run_bounded_starts_in_fifo_order():
    started = []

    async def work(item):
        started.append(item)
        await asyncio.sleep(0)

    await run_bounded(range(10), 2, work)

    assert started == list(range(10))


@pytest.mark.asyncio
async def test_run_bounded_stop_skips_pending():
    stop = False

    async def work(item):
        nonlocal stop
        if item == 1:
            stop = True
        await asyncio.sleep(0)
        return item

    result = await run_bounded(range(6), 2, work, should_stop=lambda: stop)

    assert sorted(result.completed) == [0, 1]
    assert result.skipped == [2, 3, 4, 5]


@pytest.mark.asyncio
async def test_run_bounded_error_cancels_in_flight():
    blocker = asyncio.Event()
    cancelled = []

    async def work(item):
        if item == 0:
            await asyncio.sleep(0)
            raise RuntimeError("boom")
        try:
            await blocker.wait()
        except asyncio.CancelledError:
            cancelled.append(item)
            raise

    with pytest.raises(RuntimeError, match="boom"):
        await run_bounded(range(3), 3, work)

    await spin()
    assert sorted(cancelled) == [1, 2]
