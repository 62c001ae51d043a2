"""Bounded task pool used for both batches and transfers."""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, Sequence, Set, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class PoolResult(Generic[T, R]):
    """Results in completion order, plus items never started because of a stop request."""
    completed: List[R] = field(default_factory=list)
    skipped: List[T] = field(default_factory=list)


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive chunks of size; the last one may be shorter."""
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_bounded(
    items: Iterable[T],
    limit: int,
    start: Callable[[T], Awaitable[R]],
    should_stop: Optional[Callable[[], bool]] = None,
) -> PoolResult:
    """
    Run start(item) for every item with at most limit tasks in flight.

    Items start in FIFO order; whenever a task resolves it is removed and
    the pool refills from the queue. Once should_stop() returns True no new
    item starts, but tasks already in flight are awaited to completion.

    If a task raises, the remaining in-flight tasks are cancelled and the
    exception propagates.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    pending = deque(items)
    in_flight: Set[asyncio.Task] = set()
    result = PoolResult()

    try:
        while pending or in_flight:
            while pending and len(in_flight) < limit:
                if should_stop is not None and should_stop():
                    break
                in_flight.add(asyncio.create_task(start(pending.popleft())))

            if not in_flight:
                break

            done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                result.completed.append(task.result())
    finally:
        for task in in_flight:
            task.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

    result.skipped = list(pending)
    return result
