"""Lightweight in-process metrics for development and tests.

Components record counters and timings here so tests can observe how many
queries were issued, dropped or cancelled without patching internals.

Usage:
    from query_loader.engine.metrics import metrics
    metrics.inc("loader.fetch_dispatched")
    with metrics.timed("loader.fetch_duration"):
        ...
    assert metrics.count("loader.fetch_dispatched") == 1
"""

from __future__ import annotations

import time
from collections import Counter, defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from threading import RLock


class _Metrics:
    def __init__(self) -> None:
        self._counters: Counter[str] = Counter()
        self._timings: defaultdict[str, list[float]] = defaultdict(list)
        # Strategies record from the worker thread, the loader from the GUI thread
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    def timings(self, key: str) -> list[float]:
        with self._lock:
            return list(self._timings.get(key, ()))

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self._timings[key].append(elapsed)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = _Metrics()
