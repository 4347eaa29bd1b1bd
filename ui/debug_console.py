"""Debug console: a dock listing the diagnostics log, newest entry first."""

from __future__ import annotations

from typing import Optional

from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QDockWidget,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from session.diagnostics import DiagnosticsLog, LogEntry
from session.events import Subscription

_LEVEL_COLORS = {
    "debug": QColor(140, 140, 140),
    "info": QColor(90, 160, 255),
    "warn": QColor(230, 170, 40),
    "error": QColor(230, 70, 70),
}


class DebugConsole(QDockWidget):
    """
    Columns: time, level, source, message.

    The dock holds two subscriptions on the diagnostics log and releases them in
    `dispose()`, which the main window calls on close.
    """

    def __init__(self, diagnostics: DiagnosticsLog, parent: Optional[QWidget] = None) -> None:
        super().__init__("Debug Console", parent)
        self.setObjectName("debugConsole")
        self._log = diagnostics

        self._tree = QTreeWidget()
        self._tree.setHeaderLabels(["Time", "Level", "Source", "Message"])
        self._tree.setRootIsDecorated(False)
        self._tree.setUniformRowHeights(True)

        self._count = QLabel()
        clear = QPushButton("Clear")
        clear.clicked.connect(self._log.clear)  # type: ignore[arg-type]

        bar = QHBoxLayout()
        bar.addWidget(self._count)
        bar.addStretch(1)
        bar.addWidget(clear)

        body = QWidget()
        layout = QVBoxLayout(body)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.addLayout(bar)
        layout.addWidget(self._tree, 1)
        self.setWidget(body)

        self._subs: list[Subscription] = [
            diagnostics.on_entry(self._prepend),
            diagnostics.on_cleared(lambda _p: self._reload()),
        ]
        self._reload()

    def toggle(self) -> None:
        self.setVisible(not self.isVisible())

    def dispose(self) -> None:
        for sub in self._subs:
            sub.close()
        self._subs = []

    def _item(self, e: LogEntry) -> QTreeWidgetItem:
        item = QTreeWidgetItem([e.timestamp, e.level.upper(), e.source, e.message])
        color = _LEVEL_COLORS.get(e.level)
        if color is not None:
            item.setForeground(1, color)
        if e.category:
            item.setToolTip(3, e.category)
        return item

    def _prepend(self, e: LogEntry) -> None:
        self._tree.insertTopLevelItem(0, self._item(e))
        # Mirror the ring buffer's cap.
        while self._tree.topLevelItemCount() > self._log.capacity:
            self._tree.takeTopLevelItem(self._tree.topLevelItemCount() - 1)
        self._update_count()

    def _reload(self) -> None:
        self._tree.clear()
        self._tree.addTopLevelItems([self._item(e) for e in self._log.newest_first()])
        self._update_count()

    def _update_count(self) -> None:
        self._count.setText(f"{self._tree.topLevelItemCount()} entries")
