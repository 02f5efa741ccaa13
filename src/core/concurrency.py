"""Bounded-concurrency runner that keeps results aligned with inputs."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_concurrency(
    factories: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
) -> List[T]:
    """
    Run zero-argument coroutine factories with at most ``limit`` in flight.

    A pool of ``min(limit, len(factories))`` workers pulls the next
    unclaimed index from a shared counter. Results are written into a
    pre-sized list, so ``results[i]`` always belongs to ``factories[i]``
    whatever the completion order. An exception from any factory aborts
    the whole run; callers that need partial results must catch inside
    their factories.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    total = len(factories)
    results: List[T] = [None] * total  # type: ignore[list-item]
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while True:
            # Claim happens without awaiting, so no two workers share an index
            current = next_index
            next_index += 1
            if current >= total:
                return
            results[current] = await factories[current]()

    worker_count = min(limit, total)
    if worker_count:
        logger.debug(f"Running {total} tasks on {worker_count} workers")
        await asyncio.gather(*(worker() for _ in range(worker_count)))
    return results
