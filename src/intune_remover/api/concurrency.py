#!/usr/bin/env python3
"""Bounded concurrent task execution.

Runs an ordered list of zero-argument async task factories with at most N
of them in flight. Results land in index-addressed slots, so the output
order always equals the input order no matter which task finishes first.

Guarantees:
    - Every task is invoked exactly once
    - At most ``max_concurrent`` tasks are in flight at any moment
    - A failing task never cancels or blocks its siblings; its exception
      is stored in its slot instead of being raised

Example:
    limiter = ConcurrencyLimiter(max_concurrent=5)
    outcomes = await limiter.run([
        lambda: remover.remove("SN1"),
        lambda: remover.remove("SN2"),
    ])
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            ...
"""
import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENCY = 5

TaskFactory = Callable[[], Awaitable[T]]


class ConcurrencyLimiter:
    """Semaphore-gated worker pool with positional result slots.

    Attributes:
        max_concurrent: Size of the admission window
        peak_in_flight: Highest number of tasks in flight during the most
            recently completed ``run``
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENCY):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.peak_in_flight = 0

    async def run(
        self,
        tasks: Sequence[TaskFactory[T]],
    ) -> list[Union[T, Exception]]:
        """Run all tasks and return their outcomes in input order.

        Admission blocks while the window is full, so a new task is only
        started once an in-flight one has settled.

        Args:
            tasks: Zero-argument callables returning awaitables

        Returns:
            One entry per task: its result, or the exception it raised
        """
        slots: list[Union[T, Exception, None]] = [None] * len(tasks)
        if not tasks:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent)
        running: set[asyncio.Task] = set()
        # Per-call counters
        counts = {"in_flight": 0, "peak": 0}

        async def worker(index: int, task: TaskFactory[T]) -> None:
            counts["in_flight"] += 1
            counts["peak"] = max(counts["peak"], counts["in_flight"])
            try:
                slots[index] = await task()
            except Exception as e:
                logger.warning(f"Task {index} failed: {e}")
                slots[index] = e
            finally:
                counts["in_flight"] -= 1
                semaphore.release()

        for index, task in enumerate(tasks):
            await semaphore.acquire()
            handle = asyncio.create_task(worker(index, task))
            running.add(handle)
            handle.add_done_callback(running.discard)

        if running:
            await asyncio.gather(*running)

        self.peak_in_flight = counts["peak"]
        logger.debug(
            f"Ran {len(tasks)} task(s), peak concurrency "
            f"{counts['peak']}/{self.max_concurrent}"
        )
        return slots
