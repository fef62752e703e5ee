from __future__ import annotations

from typing import Any

from PySide6.QtCore import QObject, Signal, SignalInstance

from query_loader.logger import get_logger

from .loader import QueryLoader

_logger = get_logger("observer")


class SignalObservedLoader(QueryLoader):
    """QueryLoader that reloads whenever an external Qt signal fires.

    The signal is connected while the loader is started and disconnected on
    reset, so a reset loader never reacts to stale notifications.
    """

    def __init__(self, changed_signal: SignalInstance, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._changed_signal = changed_signal
        self._connected = False

    def on_register_observer(self) -> None:
        if self._connected:
            return
        self._changed_signal.connect(self._on_source_changed)
        self._connected = True
        _logger.debug("observer registered")

    def on_unregister_observer(self) -> None:
        if not self._connected:
            return
        try:
            self._changed_signal.disconnect(self._on_source_changed)
        except (RuntimeError, TypeError):
            _logger.debug("observer disconnect failed", exc_info=True)
        self._connected = False
        _logger.debug("observer unregistered")

    def _on_source_changed(self, *_args: Any) -> None:
        self.notify_content_changed()


class ChangeNotifier(QObject):
    """Minimal QObject a data owner can use to announce that its data changed."""

    changed = Signal()

    def notify(self) -> None:
        self.changed.emit()
