from __future__ import annotations

import json
import os
from typing import Any

from .engine.strategy import DEFAULT_OBJECTS_PER_PAGE, QUERY_LIMIT
from .logger import get_logger

_logger = get_logger("settings")


class LoaderSettings:
    """JSON-backed loader configuration.

    Values missing from the file fall back to DEFAULTS; invalid values are
    reported and ignored.
    """

    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "objects_per_page": DEFAULT_OBJECTS_PER_PAGE,
        "exhaustive": False,
        "query_limit": QUERY_LIMIT,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    def _non_negative_int(self, key: str, minimum: int = 0) -> int:
        val = self.get(key)
        if isinstance(val, bool) or not isinstance(val, int) or val < minimum:
            _logger.warning("invalid %s in settings: %r", key, val)
            return int(self.DEFAULTS[key])
        return val

    @property
    def objects_per_page(self) -> int:
        return self._non_negative_int("objects_per_page")

    @property
    def query_limit(self) -> int:
        return self._non_negative_int("query_limit", minimum=1)

    @property
    def exhaustive(self) -> bool:
        return bool(self.get("exhaustive", False))
