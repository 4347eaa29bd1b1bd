# ui/host_window.py
from __future__ import annotations

from typing import Tuple

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QWidget


class QtHostWindow:
    """
    Adapts a top-level QWidget to the `ui.window_mode.HostWindow` protocol.

    Changing WindowStaysOnTopHint re-creates the native window, which hides it; the
    widget is shown again afterwards if it was visible.
    """

    def __init__(self, widget: QWidget) -> None:
        self._w = widget

    def size(self) -> Tuple[int, int]:
        return int(self._w.width()), int(self._w.height())

    def resize(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid window size {width}x{height}")
        self._w.resize(int(width), int(height))

    def set_always_on_top(self, enabled: bool) -> None:
        flags = self._w.windowFlags()
        current = bool(flags & Qt.WindowType.WindowStaysOnTopHint)
        if current == bool(enabled):
            return
        visible = self._w.isVisible()
        self._w.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, bool(enabled))
        if visible:
            self._w.show()
