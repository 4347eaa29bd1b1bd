"""Live overlay area selection.

A frameless, translucent, always-on-top surface covering the whole virtual desktop.
The user drags a rectangle directly over whatever is on screen.

Coordinate handling:
- The gesture is tracked in absolute (global) logical coordinates, so it does not
  depend on where the surface happens to be placed.
- The live rectangle is painted relative to the surface origin (global minus
  surface offset).
- On release the rectangle is scaled by the surface's device pixel ratio into the
  physical pixels the backend drives the pointer in, then published as an
  `area-selected` event. The surface hides only when the selection coordinator
  accepts the result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QRect, Qt
from PySide6.QtGui import QColor, QGuiApplication, QPainter, QPen
from PySide6.QtWidgets import QWidget

from session.events import AREA_SELECTED
from session.geometry import Rect, round_int, to_physical
from session.selection import OVERLAY_MIN_SIZE_PX, DragTracker, SelectionSession

logger = logging.getLogger(__name__)


def virtual_desktop_geometry() -> QRect:
    """Union of all screen geometries in Qt logical coordinates."""
    union = QRect()
    for screen in QGuiApplication.screens():
        union = union.united(screen.geometry())
    return union


def logical_to_physical_rect(rect: Rect, dpr: float) -> Rect:
    x, y = to_physical(rect.x, rect.y, dpr)
    scale = float(dpr) if dpr and dpr > 0 else 1.0
    return Rect(x=x, y=y, width=round_int(rect.width * scale), height=round_int(rect.height * scale))


class OverlaySelectionWindow(QWidget):
    """
    Fullscreen drag surface.

    Args:
        publish: `(event_name, payload)` sink; normally the shared EventHub's publish.
        on_cancel: called when the user presses Esc.
        min_px: both sides of a gesture must exceed this (logical px) to count.
    """

    def __init__(
        self,
        *,
        publish: Callable[[str, Any], Any],
        on_cancel: Callable[[], None],
        min_px: int = OVERLAY_MIN_SIZE_PX,
    ) -> None:
        super().__init__()
        self._publish = publish
        self._on_cancel = on_cancel
        self._tracker = DragTracker(min_width=int(min_px), min_height=int(min_px))

        self._dim = QColor(0, 0, 0, 90)
        self._fill = QColor(0, 180, 255, 50)
        self._pen = QPen(QColor(0, 180, 255))
        self._pen.setWidth(2)

        self.setWindowTitle("SawBot area selection")
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setCursor(Qt.CursorShape.CrossCursor)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    def begin(self) -> None:
        """Cover the virtual desktop and grab focus for Esc."""
        self._tracker.cancel()
        self.setGeometry(virtual_desktop_geometry())
        self.show()
        self.raise_()
        self.activateWindow()
        self.setFocus()

    def end(self) -> None:
        self._tracker.cancel()
        self.hide()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        _ = event
        p = QPainter(self)
        p.fillRect(self.rect(), self._dim)
        live = self._tracker.current()
        if live is None:
            return
        origin = self.geometry().topLeft()
        local = QRect(live.x - origin.x(), live.y - origin.y(), live.width, live.height)
        p.setPen(self._pen)
        p.setBrush(self._fill)
        p.drawRect(local)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        g = event.globalPosition().toPoint()
        self._tracker.press(g.x(), g.y())
        self.update()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if not self._tracker.active:
            return
        g = event.globalPosition().toPoint()
        self._tracker.move(g.x(), g.y())
        self.update()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        g = event.globalPosition().toPoint()
        rect = self._tracker.release(g.x(), g.y())
        self.update()
        if rect is None:
            logger.debug("Overlay gesture below minimum size; still waiting")
            return
        physical = logical_to_physical_rect(rect, self.devicePixelRatioF())
        self._publish(AREA_SELECTED, physical.as_payload())

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            self._on_cancel()
            return
        super().keyPressEvent(event)


class OverlayStrategy:
    """`SelectionStrategy` that shows an OverlaySelectionWindow (created lazily, reused)."""

    source = "overlay"

    def __init__(self, *, publish: Callable[[str, Any], Any], min_px: int = OVERLAY_MIN_SIZE_PX) -> None:
        self._publish = publish
        self._min_px = int(min_px)
        self._window: Optional[OverlaySelectionWindow] = None
        self._session: Optional[SelectionSession] = None

    def open(self, session: SelectionSession) -> None:
        self._session = session
        if self._window is None:
            self._window = OverlaySelectionWindow(
                publish=self._publish,
                on_cancel=self._cancel,
                min_px=self._min_px,
            )
        self._window.begin()

    def close(self) -> None:
        self._session = None
        if self._window is not None:
            self._window.end()

    def _cancel(self) -> None:
        if self._session is not None:
            self._session.cancel()
        elif self._window is not None:
            self._window.end()
