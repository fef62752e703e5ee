"""Pytest configuration.

The loader is a QObject that marshals worker completions back through Qt
signals, so a single QCoreApplication is created for the whole session.

Most tests swap the loader's ``io_pool`` for one of the fake pools below so
that every lifecycle interleaving runs deterministically on the test thread.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any

import pytest

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    global _APP

    app = QCoreApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = QCoreApplication([]) if app is None else app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    app = QCoreApplication.instance()
    if app is None:
        return
    app.processEvents()


class ManualPool:
    """Executor stand-in that only runs jobs when the test says so."""

    def __init__(self) -> None:
        self.jobs: list[tuple[Any, tuple, Future]] = []

    def submit(self, fn, /, *args, **kwargs):  # noqa: ANN001
        fut: Future = Future()
        self.jobs.append((lambda: fn(*args, **kwargs), args, fut))
        return fut

    @property
    def queued(self) -> int:
        return sum(1 for (_fn, _args, fut) in self.jobs if not fut.done() and not fut.running())

    def start(self, index: int = 0) -> Future:
        """Mark job as running so it can no longer be cancelled."""
        fut = self.jobs[index][2]
        assert fut.set_running_or_notify_cancel()
        return fut

    def finish(self, index: int = 0) -> None:
        fn, _args, fut = self.jobs[index]
        if not fut.running():
            if not fut.set_running_or_notify_cancel():
                return
        try:
            fut.set_result(fn())
        except Exception as exc:
            fut.set_exception(exc)

    def run_all(self) -> None:
        i = 0
        while i < len(self.jobs):
            if not self.jobs[i][2].done():
                self.finish(i)
            i += 1

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:  # noqa: ARG002
        return None


class SyncPool(ManualPool):
    """Executor stand-in that runs every job inside submit()."""

    def submit(self, fn, /, *args, **kwargs):  # noqa: ANN001
        fut = super().submit(fn, *args, **kwargs)
        self.finish(len(self.jobs) - 1)
        return fut


@pytest.fixture
def manual_pool() -> ManualPool:
    return ManualPool()


@pytest.fixture
def sync_pool() -> SyncPool:
    return SyncPool()


@pytest.fixture(autouse=True)
def _reset_metrics():
    from query_loader.engine.metrics import metrics

    metrics.reset()
    yield
    metrics.reset()


def install_pool(loader, pool) -> None:  # noqa: ANN001
    loader.io_pool.shutdown(wait=False)
    loader.io_pool = pool


class Recorder:
    """Collects loader deliveries."""

    def __init__(self, loader) -> None:  # noqa: ANN001
        self.results: list[tuple] = []
        self.errors: list[BaseException] = []
        loader.result_ready.connect(self.results.append)
        loader.load_failed.connect(self.errors.append)

    @property
    def last(self) -> tuple | None:
        return self.results[-1] if self.results else None


@pytest.fixture
def make_loader():
    """Build a QueryLoader wired to a fake pool and a recorder."""
    from query_loader.engine import QueryLoader

    created = []

    def _make(source, pool, cls=QueryLoader, **kwargs):  # noqa: ANN001
        loader = cls(source=source, **kwargs)
        install_pool(loader, pool)
        created.append(loader)
        return loader, Recorder(loader)

    yield _make
    for loader in created:
        loader.shutdown()
