from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from query_loader.logger import get_logger

from .strategy import PageResult

_logger = get_logger("pagination")


@dataclass
class PaginationState:
    """Page bookkeeping owned by a single loader.

    ``page_to_load >= current_page`` holds at all times.
    """

    objects_per_page: int
    current_page: int = 0
    page_to_load: int = 0
    has_next_page: bool = False

    @property
    def enabled(self) -> bool:
        return self.objects_per_page > 0

    def apply(self, result: PageResult) -> bool:
        """Record a completed page. Returns False for a stale completion."""
        if result.page_index < self.current_page:
            _logger.debug(
                "stale page dropped: page=%d current=%d", result.page_index, self.current_page
            )
            return False
        self.current_page = result.page_index
        self.page_to_load = max(self.page_to_load, self.current_page)
        self.has_next_page = bool(result.has_next) and self.enabled
        return True

    def advance(self) -> int:
        self.page_to_load = self.current_page + 1
        return self.page_to_load

    def clear(self) -> None:
        self.current_page = 0
        self.page_to_load = 0
        self.has_next_page = False


def accumulate(previous: Sequence[Any] | None, page: Sequence[Any]) -> tuple[Any, ...]:
    """Return a new snapshot: ``previous`` followed by ``page``."""
    if not previous:
        return tuple(page)
    return (*previous, *page)
