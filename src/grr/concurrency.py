"""Fan-out/fan-in helper for independent network fetches.

Used for extra-issue titles. The first failure wins: pending work is
cancelled and that exception is raised; there is no partial success.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TypeVar

from .logging import get_logger

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_WORKERS = 4


def fetch_all(
    items: Sequence[T],
    fn: Callable[[T], R],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[R]:
    """Apply ``fn`` to every item concurrently, preserving input order."""
    if not items:
        return []
    if len(items) == 1:
        return [fn(items[0])]

    logger = get_logger()
    start = time.perf_counter()
    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures: list[Future[R]] = [executor.submit(fn, item) for item in items]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in futures:
            exc = fut.exception() if fut in done else None
            if exc is not None:
                for other in pending:
                    other.cancel()
                raise exc
    logger.log_performance(
        "fetch_all", (time.perf_counter() - start) * 1000, item_count=len(items)
    )
    return [fut.result() for fut in futures]


__all__ = ["fetch_all"]
