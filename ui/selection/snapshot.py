"""Snapshot area selection.

The backend captures the full screen; the image is shown 1:1 in a modal dialog and
the user drags a rectangle over the static picture.

Image pixels are treated as absolute screen pixels. That holds only when the
capture and the backend's pointer space share one display density, so the pixmap
is given the dialog's device pixel ratio: one image pixel then covers one device
pixel, and widget (logical) positions are scaled back by the same ratio.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QRect, QSize, Qt, Signal
from PySide6.QtGui import QColor, QGuiApplication, QPainter, QPen, QPixmap
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QLabel,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from backend.protocol import CommandResult, DrawingBackend, ScreenCapture
from session.geometry import Rect, round_int, to_physical
from session.selection import DragTracker, SelectionSession

logger = logging.getLogger(__name__)


def load_capture(capture: ScreenCapture) -> QPixmap:
    """Decode a backend capture; returns a null pixmap when it cannot be read."""
    pm = QPixmap()
    if capture.data is not None:
        pm.loadFromData(capture.data)
    elif capture.path:
        pm.load(capture.path)
    return pm


class SnapshotCanvas(QWidget):
    """Paints the captured pixmap at 1:1 and tracks a drag in image pixels."""

    selected = Signal(object)  # Rect in image pixels

    def __init__(self, pixmap: QPixmap, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._pixmap = pixmap
        self._tracker = DragTracker()
        self._pen = QPen(QColor(255, 60, 60))
        self._pen.setWidth(2)
        self._fill = QColor(255, 60, 60, 40)

        self.setCursor(Qt.CursorShape.CrossCursor)
        self.setMouseTracking(False)
        size = pixmap.deviceIndependentSize().toSize()
        self.setFixedSize(QSize(max(1, size.width()), max(1, size.height())))

    def _dpr(self) -> float:
        return float(self._pixmap.devicePixelRatio()) or 1.0

    def _image_point(self, event) -> tuple[int, int]:
        pos = event.position()
        return to_physical(pos.x(), pos.y(), self._dpr())

    def paintEvent(self, event) -> None:  # type: ignore[override]
        _ = event
        p = QPainter(self)
        p.drawPixmap(0, 0, self._pixmap)
        live = self._tracker.current()
        if live is None:
            return
        dpr = self._dpr()
        p.setPen(self._pen)
        p.setBrush(self._fill)
        p.drawRect(
            QRect(
                round_int(live.x / dpr),
                round_int(live.y / dpr),
                round_int(live.width / dpr),
                round_int(live.height / dpr),
            )
        )

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        self._tracker.press(*self._image_point(event))
        self.update()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._tracker.active:
            self._tracker.move(*self._image_point(event))
            self.update()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        rect = self._tracker.release(*self._image_point(event))
        self.update()
        if rect is not None:
            self.selected.emit(rect)

    def leaveEvent(self, event) -> None:  # type: ignore[override]
        # Leaving the picture abandons the gesture; the dialog stays open.
        if self._tracker.active:
            self._tracker.cancel()
            self.update()
        super().leaveEvent(event)


class SnapshotSelectionDialog(QDialog):
    """Modal dialog hosting a SnapshotCanvas; Esc or Cancel rejects."""

    def __init__(self, pixmap: QPixmap, *, on_selected: Callable[[Rect], None], parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._on_selected = on_selected
        self.setWindowTitle("Select drawing area")
        self.setModal(True)

        hint = QLabel("Drag over the screenshot to choose the drawing area. Esc cancels.")
        self._canvas = SnapshotCanvas(pixmap)
        self._canvas.selected.connect(self._handle_selected)  # type: ignore[arg-type]

        scroll = QScrollArea()
        scroll.setWidget(self._canvas)
        scroll.setAlignment(Qt.AlignmentFlag.AlignCenter)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Cancel)
        buttons.rejected.connect(self.reject)  # type: ignore[arg-type]

        layout = QVBoxLayout(self)
        layout.addWidget(hint)
        layout.addWidget(scroll, 1)
        layout.addWidget(buttons)

    def _handle_selected(self, rect: object) -> None:
        self.accept()
        self._on_selected(rect)  # type: ignore[arg-type]


class SnapshotStrategy:
    """
    `SelectionStrategy` backed by `capture_screen`.

    A failed or unreadable capture fails the session (SelectionToolFailure) and no
    dialog is shown.
    """

    source = "snapshot"

    def __init__(self, *, backend: DrawingBackend, parent: Optional[QWidget] = None) -> None:
        self._backend = backend
        self._parent = parent
        self._session: Optional[SelectionSession] = None
        self._dialog: Optional[SnapshotSelectionDialog] = None

    def open(self, session: SelectionSession) -> None:
        self._session = session
        self._backend.capture_screen(lambda res: self._on_capture(session, res))

    def close(self) -> None:
        self._session = None
        dlg = self._dialog
        self._dialog = None
        if dlg is not None and dlg.isVisible():
            dlg.reject()

    def _forget(self, dlg: SnapshotSelectionDialog) -> None:
        # Qt deletes the finished dialog; drop the wrapper so close() never touches it.
        if self._dialog is dlg:
            self._dialog = None

    def _device_pixel_ratio(self) -> float:
        if self._parent is not None:
            return float(self._parent.devicePixelRatioF())
        screen = QGuiApplication.primaryScreen()
        return float(screen.devicePixelRatio()) if screen is not None else 1.0

    def _on_capture(self, session: SelectionSession, res: CommandResult) -> None:
        if not session.active:
            logger.debug("Discarding screenshot for a finished snapshot session")
            return
        if not res.ok or not isinstance(res.value, ScreenCapture):
            session.fail(f"Screen capture failed: {res.error or 'no image returned'}")
            return

        pixmap = load_capture(res.value)
        if pixmap.isNull():
            session.fail("Screen capture could not be decoded")
            return

        pixmap.setDevicePixelRatio(self._device_pixel_ratio())
        dlg = SnapshotSelectionDialog(pixmap, on_selected=session.commit, parent=self._parent)
        dlg.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, True)
        dlg.finished.connect(lambda _code, d=dlg: self._forget(d))  # type: ignore[arg-type]
        dlg.rejected.connect(session.cancel)  # type: ignore[arg-type]
        size = pixmap.deviceIndependentSize().toSize()
        dlg.resize(min(1200, size.width() + 40), min(800, size.height() + 80))
        self._dialog = dlg
        dlg.open()
