from __future__ import annotations

import pytest

PySide6 = pytest.importorskip("PySide6")  # noqa: F401

from query_loader.engine.pagination import PaginationState, accumulate
from query_loader.engine.strategy import PageResult


def test_accumulate_appends_in_order_without_dedup() -> None:
    snapshots = [None]
    pages = [("a", "b"), ("c",), (), ("a",)]
    for page in pages:
        snapshots.append(accumulate(snapshots[-1], page))

    for k in range(1, len(snapshots)):
        assert snapshots[k] == tuple(snapshots[k - 1] or ()) + pages[k - 1]
    assert snapshots[-1] == ("a", "b", "c", "a")


def test_accumulate_returns_new_snapshot() -> None:
    first = accumulate(None, ["x"])
    second = accumulate(first, ["y"])
    assert first == ("x",)
    assert second == ("x", "y")
    assert isinstance(second, tuple)


def test_apply_moves_forward_and_records_next_flag() -> None:
    state = PaginationState(objects_per_page=2)
    assert state.apply(PageResult(page_index=0, items=(1, 2), has_next=True))
    assert (state.current_page, state.has_next_page) == (0, True)

    state.advance()
    assert state.page_to_load == 1
    assert state.apply(PageResult(page_index=1, items=(3,), has_next=False))
    assert (state.current_page, state.page_to_load, state.has_next_page) == (1, 1, False)


def test_stale_completion_does_not_regress_state() -> None:
    state = PaginationState(objects_per_page=2, current_page=2, page_to_load=2, has_next_page=True)

    applied = state.apply(PageResult(page_index=1, items=(9,), has_next=False))

    assert applied is False
    assert state.current_page == 2
    assert state.has_next_page is True
    assert state.page_to_load >= state.current_page


def test_disabled_pagination_never_has_next() -> None:
    state = PaginationState(objects_per_page=0)
    state.apply(PageResult(page_index=0, items=(1, 2, 3), has_next=True))
    assert state.has_next_page is False


def test_clear() -> None:
    state = PaginationState(objects_per_page=5, current_page=3, page_to_load=4, has_next_page=True)
    state.clear()
    assert (state.current_page, state.page_to_load, state.has_next_page) == (0, 0, False)
    assert state.objects_per_page == 5
