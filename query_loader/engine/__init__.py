"""Query engine - paginated, lifecycle-bound loading of query results.

This package provides:
- Query sources (source, sqlite_source)
- Fetch strategies (strategy): bounded page with lookahead, exhaustive
- Page bookkeeping (pagination)
- The lifecycle controller (loader) and observer-driven variant (observer)

Usage:
    from query_loader.engine import QueryLoader, SequenceQuerySource

    loader = QueryLoader(SequenceQuerySource(rows), objects_per_page=25)
    loader.result_ready.connect(on_rows)
    loader.start()
    ...
    if loader.has_next_page():
        loader.request_next_page()
"""

from .errors import InvalidStateError, QueryError
from .loader import LifecyclePhase, LoaderMode, QueryLoader
from .observer import ChangeNotifier, SignalObservedLoader
from .pagination import PaginationState, accumulate
from .source import CallableQuerySource, QueryParameters, QuerySource, SequenceQuerySource
from .sqlite_source import SqliteQuerySource
from .strategy import (
    DEFAULT_OBJECTS_PER_PAGE,
    QUERY_LIMIT,
    BoundedPageFetch,
    ExhaustiveFetch,
    FetchStrategy,
    PageResult,
)

__all__ = [
    "DEFAULT_OBJECTS_PER_PAGE",
    "QUERY_LIMIT",
    "BoundedPageFetch",
    "CallableQuerySource",
    "ChangeNotifier",
    "ExhaustiveFetch",
    "FetchStrategy",
    "InvalidStateError",
    "LifecyclePhase",
    "LoaderMode",
    "PageResult",
    "PaginationState",
    "QueryError",
    "QueryLoader",
    "QueryParameters",
    "QuerySource",
    "SequenceQuerySource",
    "SignalObservedLoader",
    "SqliteQuerySource",
    "accumulate",
]
