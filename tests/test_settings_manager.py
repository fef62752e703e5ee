from __future__ import annotations

import json
from pathlib import Path

import pytest

PySide6 = pytest.importorskip("PySide6")  # noqa: F401

from query_loader.settings_manager import LoaderSettings


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    s = LoaderSettings(str(tmp_path / "missing.json"))
    assert s.objects_per_page == 25
    assert s.query_limit == 1000
    assert s.exhaustive is False
    assert s.data == {}


def test_set_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "loader.json"
    s = LoaderSettings(str(path))
    s.set("objects_per_page", 10)
    s.set("exhaustive", True)

    assert json.loads(path.read_text(encoding="utf-8")) == {"objects_per_page": 10, "exhaustive": True}
    again = LoaderSettings(str(path))
    assert again.objects_per_page == 10
    assert again.exhaustive is True
    assert again.has("objects_per_page")


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "loader.json"
    path.write_text("{not json", encoding="utf-8")
    s = LoaderSettings(str(path))
    assert s.data == {}
    assert s.objects_per_page == 25


@pytest.mark.parametrize("value", [-1, "ten", 2.5, True])
def test_invalid_page_size_uses_default(tmp_path: Path, value) -> None:  # noqa: ANN001
    path = tmp_path / "loader.json"
    path.write_text(json.dumps({"objects_per_page": value}), encoding="utf-8")
    assert LoaderSettings(str(path)).objects_per_page == 25


def test_zero_query_limit_rejected(tmp_path: Path) -> None:
    path = tmp_path / "loader.json"
    path.write_text(json.dumps({"query_limit": 0, "objects_per_page": 0}), encoding="utf-8")
    s = LoaderSettings(str(path))
    assert s.query_limit == 1000
    # zero page size is valid: pagination disabled
    assert s.objects_per_page == 0


def test_loader_from_settings(tmp_path: Path) -> None:
    from query_loader.engine import LoaderMode, QueryLoader

    path = tmp_path / "loader.json"
    path.write_text(json.dumps({"objects_per_page": 7, "exhaustive": True, "query_limit": 50}), encoding="utf-8")
    loader = QueryLoader.from_settings(LoaderSettings(str(path)))
    try:
        assert loader.objects_per_page == 7
        assert loader.mode is LoaderMode.EXHAUSTIVE_ALL
        assert loader.make_strategy().batch_size == 50
    finally:
        loader.shutdown()
