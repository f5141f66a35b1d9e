from __future__ import annotations

import threading
import time

import pytest

from grr.concurrency import fetch_all


def test_fetch_all_preserves_order() -> None:
    def slow_upper(s: str) -> str:
        time.sleep(0.01 * (3 - len(s)))
        return s.upper()

    assert fetch_all(["a", "bb", "ccc"], slow_upper) == ["A", "BB", "CCC"]


def test_fetch_all_empty_and_single() -> None:
    assert fetch_all([], str) == []
    assert fetch_all([7], str) == ["7"]


def test_fetch_all_runs_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=5)

    def wait_for_peers(n: int) -> int:
        barrier.wait()
        return n * 2

    assert fetch_all([1, 2, 3], wait_for_peers, max_workers=3) == [2, 4, 6]


def test_first_failure_wins() -> None:
    started: list[int] = []

    def fetch(n: int) -> int:
        started.append(n)
        if n == 1:
            raise LookupError("issue 1 not found")
        time.sleep(0.05)
        return n

    with pytest.raises(LookupError, match="issue 1"):
        fetch_all(list(range(1, 20)), fetch, max_workers=2)
    assert len(started) < 19
