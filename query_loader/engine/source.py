"""Query sources consumed by the fetch strategies.

A source only needs an ``execute(params)`` method returning an ordered
sequence. Failures of any kind must surface as ``QueryError``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from query_loader.logger import get_logger

from .errors import QueryError

_logger = get_logger("source")


@dataclass
class QueryParameters:
    """skip/limit for a single call. None means unset (unbounded)."""

    skip: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.skip is not None and self.skip < 0:
            raise ValueError(f"skip must be >= 0, got {self.skip}")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")

    @property
    def is_bounded(self) -> bool:
        return self.limit is not None


@runtime_checkable
class QuerySource(Protocol):
    def execute(self, params: QueryParameters) -> Sequence[Any]: ...


class SequenceQuerySource:
    """In-memory source over an ordered sequence.

    Every call is recorded in ``calls`` (as (skip, limit) tuples) so callers
    can inspect how a strategy paged through the data.
    """

    def __init__(self, items: Sequence[Any] = ()):
        self._items = list(items)
        self._lock = threading.Lock()
        self.calls: list[tuple[int | None, int | None]] = []

    def set_items(self, items: Sequence[Any]) -> None:
        with self._lock:
            self._items = list(items)

    def execute(self, params: QueryParameters) -> list[Any]:
        with self._lock:
            self.calls.append((params.skip, params.limit))
            start = params.skip or 0
            if params.limit is None:
                return self._items[start:]
            return self._items[start : start + params.limit]


class CallableQuerySource:
    """Adapts ``fn(skip, limit) -> sequence`` into a QuerySource."""

    def __init__(self, fn: Callable[[int | None, int | None], Sequence[Any]]):
        self._fn = fn

    def execute(self, params: QueryParameters) -> list[Any]:
        try:
            return list(self._fn(params.skip, params.limit))
        except QueryError:
            raise
        except Exception as exc:
            _logger.debug("callable source failed: skip=%s limit=%s", params.skip, params.limit, exc_info=True)
            raise QueryError(str(exc)) from exc
