"""
Bounded worker pool for async tasks.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar('T')


async def run_bounded(
    items: Iterable[T],
    limit: int,
    task: Callable[[T], Awaitable[object]],
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Run ``task`` over every item with at most ``limit`` calls in flight.

    Workers pull from a shared FIFO queue, so items start in input order.
    A task that raises is logged and treated as that item's outcome; the
    remaining items still run and the pool itself never raises.

    Args:
        items: Work items
        limit: Maximum concurrent tasks (>= 1)
        task: Coroutine function called once per item
        logger: Optional logger instance
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    logger = logger or logging.getLogger(__name__)
    queue = deque(items)
    if not queue:
        return

    async def worker() -> None:
        while queue:
            item = queue.popleft()
            try:
                await task(item)
            except Exception:
                logger.exception(f"Task failed for {item!r}")

    await asyncio.gather(*(worker() for _ in range(min(limit, len(queue)))))
