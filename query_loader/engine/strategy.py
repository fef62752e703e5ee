"""Fetch strategies executed on the loader's worker thread.

A strategy turns a page request into a single immutable ``PageResult``. It
never touches loader state; the loader applies the result on its own thread.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from query_loader.logger import get_logger

from .errors import QueryError
from .metrics import metrics
from .source import QueryParameters, QuerySource

_logger = get_logger("strategy")

# Max results a source hands back per call
QUERY_LIMIT = 1000
DEFAULT_OBJECTS_PER_PAGE = 25


@dataclass(frozen=True)
class PageResult:
    page_index: int
    items: tuple[Any, ...] = ()
    has_next: bool = False
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, page_index: int, error: BaseException) -> PageResult:
        return cls(page_index=page_index, items=(), has_next=False, error=error)


class FetchStrategy(ABC):
    """Abstract base for the ways a loader can pull data from a source."""

    def fetch(self, source: QuerySource, page_index: int) -> PageResult:
        """Run the strategy, converting ``QueryError`` into a failed result.

        Failure is closed: the caller gets an empty page and the error, never
        a partially filled one.
        """
        try:
            return self._fetch(source, page_index)
        except QueryError as exc:
            _logger.warning("%s: load interrupted with QueryError %s", self.get_name(), exc)
            return PageResult.failed(page_index, exc)

    @abstractmethod
    def _fetch(self, source: QuerySource, page_index: int) -> PageResult:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class BoundedPageFetch(FetchStrategy):
    """One page per call, with a one item lookahead to detect a next page."""

    def __init__(self, objects_per_page: int = DEFAULT_OBJECTS_PER_PAGE):
        if objects_per_page < 0:
            raise ValueError(f"objects_per_page must be >= 0, got {objects_per_page}")
        self.objects_per_page = int(objects_per_page)

    def get_name(self) -> str:
        return "bounded page"

    def build_params(self, page_index: int) -> QueryParameters:
        if self.objects_per_page <= 0:
            # Pagination disabled: one unbounded call
            return QueryParameters()
        return QueryParameters(skip=page_index * self.objects_per_page, limit=self.objects_per_page + 1)

    def _fetch(self, source: QuerySource, page_index: int) -> PageResult:
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        params = self.build_params(page_index)
        metrics.inc("strategy.query_calls")
        found: Sequence[Any] = source.execute(params)

        per_page = self.objects_per_page
        has_next = per_page > 0 and len(found) > per_page
        items = tuple(found[:per_page]) if has_next else tuple(found)
        _logger.debug(
            "bounded page: page=%d skip=%s limit=%s found=%d has_next=%s",
            page_index,
            params.skip,
            params.limit,
            len(found),
            has_next,
        )
        return PageResult(page_index=page_index, items=items, has_next=has_next)


class ExhaustiveFetch(FetchStrategy):
    """Pull every row of the query in fixed size batches."""

    def __init__(self, batch_size: int = QUERY_LIMIT):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        self.batch_size = int(batch_size)

    def get_name(self) -> str:
        return "exhaustive"

    def _fetch(self, source: QuerySource, page_index: int) -> PageResult:
        collected: list[Any] = []
        skip = 0
        rounds = 0
        while True:
            metrics.inc("strategy.query_calls")
            found = source.execute(QueryParameters(skip=skip, limit=self.batch_size))
            rounds += 1
            collected.extend(found)
            skip += self.batch_size
            # A full batch means there might be more rows
            if len(found) < self.batch_size:
                break
        _logger.debug("exhaustive: rounds=%d total=%d", rounds, len(collected))
        return PageResult(page_index=page_index, items=tuple(collected), has_next=False)
