# ui/alert.py
from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QTimer, Qt
from PySide6.QtGui import QColor, QFont, QGuiApplication, QPainter
from PySide6.QtWidgets import QWidget


class EmergencyFlash(QWidget):
    """
    Red, click-through, always-on-top flash shown when the backend reports an
    emergency stop.

    `show_alert(ack)` matches the controller's alert signature: the flash stays up
    for `flash_ms` and then calls `ack`, which returns the session to IDLE. A second
    alert while one is showing restarts the timer; only the latest ack is kept.
    """

    def __init__(self, *, flash_ms: int = 1200, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._ack: Optional[Callable[[], None]] = None

        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)

        self._font = QFont()
        self._font.setPointSize(28)
        self._font.setBold(True)

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, int(flash_ms)))
        self._timer.timeout.connect(self._finish)  # type: ignore[arg-type]

    def show_alert(self, ack: Callable[[], None]) -> None:
        self._ack = ack
        screen = QGuiApplication.primaryScreen()
        if screen is not None:
            self.setGeometry(screen.geometry())
        self.show()
        self.raise_()
        self._timer.start()

    def _finish(self) -> None:
        self.hide()
        ack, self._ack = self._ack, None
        if ack is not None:
            ack()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        _ = event
        p = QPainter(self)
        p.fillRect(self.rect(), QColor(200, 0, 0, 70))
        p.setPen(QColor(255, 255, 255))
        p.setFont(self._font)
        p.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "EMERGENCY STOP")
