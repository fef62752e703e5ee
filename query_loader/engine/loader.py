"""Lifecycle-bound paginated query loader.

``QueryLoader`` fetches pages from a ``QuerySource`` on a background worker,
accumulates them, and delivers the full accumulated snapshot through
``result_ready`` while the host keeps it started. The host drives it with
``start()`` / ``stop()`` / ``reset()``; all public calls must come from the
thread the loader lives in (normally the GUI thread).
"""

from __future__ import annotations

import contextlib
import functools
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QObject, Signal, Slot

from query_loader.logger import get_logger

from .errors import InvalidStateError
from .metrics import metrics
from .pagination import PaginationState, accumulate
from .source import QuerySource
from .strategy import (
    DEFAULT_OBJECTS_PER_PAGE,
    QUERY_LIMIT,
    BoundedPageFetch,
    ExhaustiveFetch,
    FetchStrategy,
    PageResult,
)

if TYPE_CHECKING:
    from query_loader.settings_manager import LoaderSettings

_logger = get_logger("loader")


class LoaderMode(Enum):
    PAGINATED = "paginated"
    EXHAUSTIVE_ALL = "exhaustive_all"


class LifecyclePhase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    STARTED = "started"
    STOPPED = "stopped"
    RESET = "reset"


class QueryLoader(QObject):
    """Loads query results page by page and hands them to a consumer.

    Signals:
        result_ready: full accumulated tuple, emitted on every delivery
        load_failed: the error of a failed fetch (the delivery still happens,
            with the unchanged result)
        phase_changed: new ``LifecyclePhase``
        loading_changed: True while a fetch is in flight
    """

    result_ready = Signal(object)
    load_failed = Signal(object)
    phase_changed = Signal(object)
    loading_changed = Signal(object)

    # req_id, page_index, PageResult | Exception; queued back from the worker
    _fetch_finished = Signal(int, int, object)

    def __init__(
        self,
        source: QuerySource | None = None,
        objects_per_page: int = DEFAULT_OBJECTS_PER_PAGE,
        mode: LoaderMode = LoaderMode.PAGINATED,
        batch_size: int = QUERY_LIMIT,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        if objects_per_page < 0:
            raise ValueError(f"objects_per_page must be >= 0, got {objects_per_page}")
        self._source = source
        self._mode = mode
        self._batch_size = int(batch_size)
        self._pagination = PaginationState(objects_per_page=int(objects_per_page))
        self._objects: tuple[Any, ...] | None = None

        self._phase = LifecyclePhase.IDLE
        self._last_phase = self._phase
        self._content_changed = False
        self._config_locked = False
        self._observer_registered = False

        # Single-flight bookkeeping
        self.io_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="query_loader")
        self._next_id = 1
        self._pending_id: int | None = None
        self._pending_page: int | None = None
        self._inflight: Future | None = None
        self._reload_pending = False

        self._fetch_finished.connect(self._on_fetch_finished)
        _logger.debug(
            "QueryLoader init: mode=%s objects_per_page=%d batch_size=%d",
            mode.value,
            objects_per_page,
            self._batch_size,
        )

    @classmethod
    def from_settings(
        cls, settings: LoaderSettings, source: QuerySource | None = None, parent: QObject | None = None
    ) -> QueryLoader:
        mode = LoaderMode.EXHAUSTIVE_ALL if settings.exhaustive else LoaderMode.PAGINATED
        return cls(
            source,
            objects_per_page=settings.objects_per_page,
            mode=mode,
            batch_size=settings.query_limit,
            parent=parent,
        )

    # ------------------------------------------------------------------
    # Configuration (locked after the first load until reset)
    # ------------------------------------------------------------------

    def _check_unlocked(self, what: str) -> None:
        if self._config_locked:
            raise InvalidStateError(f"{what} is not allowed after the first load; reset() the loader first")

    def set_query(self, source: QuerySource | None) -> QueryLoader:
        self._check_unlocked("set_query")
        self._source = source
        return self

    def set_page_size(self, objects_per_page: int) -> QueryLoader:
        if objects_per_page < 0:
            raise ValueError(f"objects_per_page must be >= 0, got {objects_per_page}")
        self._check_unlocked("set_page_size")
        self._pagination.objects_per_page = int(objects_per_page)
        return self

    def set_exhaustive_mode(self, exhaustive: bool) -> QueryLoader:
        self._check_unlocked("set_exhaustive_mode")
        self._mode = LoaderMode.EXHAUSTIVE_ALL if exhaustive else LoaderMode.PAGINATED
        return self

    @property
    def source(self) -> QuerySource | None:
        return self._source

    @property
    def mode(self) -> LoaderMode:
        return self._mode

    @property
    def objects_per_page(self) -> int:
        return self._pagination.objects_per_page

    @property
    def pagination(self) -> PaginationState:
        return self._pagination

    @property
    def objects(self) -> tuple[Any, ...] | None:
        """Current accumulated snapshot, None until the first load finishes."""
        return self._objects

    # ------------------------------------------------------------------
    # Lifecycle state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> LifecyclePhase:
        if self._phase is not LifecyclePhase.RESET and self._pending_id is not None:
            return LifecyclePhase.LOADING
        return self._phase

    def is_started(self) -> bool:
        return self._phase is LifecyclePhase.STARTED

    def is_reset(self) -> bool:
        return self._phase is LifecyclePhase.RESET

    def is_loading(self) -> bool:
        return self._pending_id is not None

    def _set_phase(self, phase: LifecyclePhase) -> None:
        self._phase = phase
        self._emit_phase()

    def _emit_phase(self) -> None:
        current = self.phase
        if current is self._last_phase:
            return
        _logger.debug("phase: %s -> %s", self._last_phase.value, current.value)
        self._last_phase = current
        self.phase_changed.emit(current)

    def _set_inflight(self, req_id: int | None, page_index: int | None = None) -> None:
        was_loading = self._pending_id is not None
        self._pending_id = req_id
        self._pending_page = page_index if req_id is not None else None
        if req_id is None:
            self._inflight = None
        loading = req_id is not None
        if loading != was_loading:
            self.loading_changed.emit(loading)
        self._emit_phase()

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Deliver what is already loaded and load more if needed."""
        self._set_phase(LifecyclePhase.STARTED)

        if self._objects is not None:
            self._deliver()
            # A result_ready slot may have stopped or reset the loader
            if self._phase is not LifecyclePhase.STARTED:
                return

        self._register_observer()

        changed = self._take_content_changed()
        if changed or self._objects is None:
            if self.is_loading():
                # The running fetch already covers an initial load
                if changed:
                    self._reload_pending = True
                _logger.debug("start: load in flight (req=%s), changed=%s", self._pending_id, changed)
            else:
                self._begin_load()

    def stop(self) -> None:
        """Stop delivering; the in-flight fetch is cancelled when still queued."""
        if self._phase is LifecyclePhase.RESET:
            return
        self._set_phase(LifecyclePhase.STOPPED)
        self._cancel_load()

    def reset(self) -> None:
        """Stop, forget every loaded item and page, and release observers."""
        if self._phase is LifecyclePhase.RESET:
            return
        self.stop()
        if self._pending_id is not None:
            _logger.debug("reset: abandoning in-flight req=%s", self._pending_id)
        self._set_inflight(None)
        self._reload_pending = False
        self._content_changed = False
        self._objects = None
        self._pagination.clear()
        self._config_locked = False
        self._unregister_observer()
        self._set_phase(LifecyclePhase.RESET)

    def shutdown(self) -> None:
        self.reset()
        self.io_pool.shutdown(wait=False, cancel_futures=True)

    def _cancel_load(self) -> bool:
        future = self._inflight
        if self._pending_id is None:
            return False
        if future is not None and future.cancel():
            _logger.debug("cancelled queued req=%s", self._pending_id)
            metrics.inc("loader.fetch_cancelled")
            self._set_inflight(None)
            # Nothing was loaded; make the next start() load again
            self._content_changed = True
        if self._reload_pending:
            self._reload_pending = False
            self._content_changed = True
        return self._pending_id is None

    # ------------------------------------------------------------------
    # Pagination / invalidation
    # ------------------------------------------------------------------

    def has_next_page(self) -> bool:
        return bool(self._objects) and self._pagination.has_next_page

    def request_next_page(self) -> None:
        if not self.has_next_page():
            raise InvalidStateError(
                "There are no more pages to load. Check has_next_page() before calling request_next_page()."
            )
        next_page = self._pagination.current_page + 1
        if self.is_loading() and self._pending_page == next_page:
            _logger.debug("request_next_page: page %d already loading", next_page)
            return
        self._pagination.advance()
        _logger.debug("request_next_page: page_to_load=%d", self._pagination.page_to_load)
        self.notify_content_changed()

    def notify_content_changed(self) -> None:
        """Mark the loaded data stale; reload now if started, else on next start()."""
        if self._phase is LifecyclePhase.STARTED:
            if self.is_loading():
                self._reload_pending = True
                _logger.debug("content changed during req=%s; reload queued", self._pending_id)
            else:
                self._begin_load()
        else:
            self._content_changed = True

    def _take_content_changed(self) -> bool:
        changed = self._content_changed
        self._content_changed = False
        return changed

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------

    def on_register_observer(self) -> None:
        """Hook for subclasses: start listening for data changes.

        Implementations should call ``notify_content_changed()`` when the
        data behind the query changes.
        """

    def on_unregister_observer(self) -> None:
        """Hook for subclasses: undo ``on_register_observer``."""

    def _register_observer(self) -> None:
        if self._observer_registered:
            return
        self.on_register_observer()
        self._observer_registered = True

    def _unregister_observer(self) -> None:
        if not self._observer_registered:
            return
        self._observer_registered = False
        self.on_unregister_observer()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def make_strategy(self) -> FetchStrategy:
        if self._mode is LoaderMode.EXHAUSTIVE_ALL:
            return ExhaustiveFetch(self._batch_size)
        return BoundedPageFetch(self._pagination.objects_per_page)

    def _begin_load(self) -> None:
        if self.is_loading():
            self._reload_pending = True
            return
        strategy = self.make_strategy()
        page_index = 0 if self._mode is LoaderMode.EXHAUSTIVE_ALL else self._pagination.page_to_load
        req_id = self._next_id
        self._next_id += 1
        self._config_locked = True
        self._set_inflight(req_id, page_index)
        metrics.inc("loader.fetch_dispatched")
        _logger.debug("begin_load: req=%d page=%d strategy=%s", req_id, page_index, strategy.get_name())

        try:
            future = self.io_pool.submit(_run_fetch, strategy, self._source, page_index)
        except RuntimeError as exc:
            # Executor already shut down
            _logger.warning("begin_load: cannot dispatch req=%d: %s", req_id, exc)
            self._set_inflight(None)
            self.load_failed.emit(exc)
            return
        # A synchronous executor may already have completed this request
        if self._pending_id == req_id:
            self._inflight = future
        future.add_done_callback(functools.partial(self._on_future_done, req_id, page_index))

    def _on_future_done(self, req_id: int, page_index: int, future: Future) -> None:
        # Runs on the worker thread (or the caller of cancel())
        if future.cancelled():
            return
        try:
            outcome: Any = future.result()
        except Exception as exc:
            _logger.exception("fetch worker failed: req=%d page=%d", req_id, page_index)
            outcome = exc
        with contextlib.suppress(RuntimeError):
            self._fetch_finished.emit(req_id, page_index, outcome)

    @Slot(int, int, object)
    def _on_fetch_finished(self, req_id: int, page_index: int, outcome: Any) -> None:
        if req_id != self._pending_id:
            # Abandoned by reset() or superseded
            metrics.inc("loader.discarded_after_reset")
            _logger.debug("fetch_finished dropped: req=%d pending=%s", req_id, self._pending_id)
            return
        self._set_inflight(None)
        if self._phase is LifecyclePhase.RESET:
            return

        result = outcome if isinstance(outcome, PageResult) else PageResult.failed(page_index, outcome)
        if not result.ok:
            metrics.inc("loader.fetch_failed")
            if self._objects is None:
                self._objects = ()
            self.load_failed.emit(result.error)
        elif self._pagination.apply(result):
            self._objects = accumulate(self._objects, result.items)
            _logger.debug(
                "fetch_finished: req=%d page=%d items=%d total=%d has_next=%s",
                req_id,
                result.page_index,
                len(result.items),
                len(self._objects),
                self._pagination.has_next_page,
            )
        else:
            metrics.inc("loader.stale_dropped")

        self._deliver()

        if self._reload_pending:
            self._reload_pending = False
            if self._phase is LifecyclePhase.STARTED:
                self._begin_load()
            else:
                self._content_changed = True

    def _deliver(self) -> None:
        if self._phase is not LifecyclePhase.STARTED or self._objects is None:
            return
        metrics.inc("loader.delivered")
        self.result_ready.emit(self._objects)


def _run_fetch(strategy: FetchStrategy, source: QuerySource | None, page_index: int) -> PageResult:
    if source is None:
        return PageResult(page_index=page_index)
    with metrics.timed("loader.fetch_duration"):
        return strategy.fetch(source, page_index)
