"""Main control surface.

Two pages in one top-level window:
- full page: image picker, method + speed, manual corners, both selection tools,
  legacy "corner from mouse" capture, start/stop, pin and mini toggles.
- mini page: method, speed, start/stop, pin, expand.

The window only forwards user intent to the controller / preference store /
window-mode manager and re-renders from their change events; it owns no session
state of its own.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

from PySide6.QtCore import QTimer, Qt
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFileDialog,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from config.config import AppConfig
from config.preferences import PreferenceStore
from session import controller as ctl
from session import state_machine as sm
from session.controller import DrawingSessionController
from session.diagnostics import DiagnosticsLog
from session.events import Subscription
from session.geometry import ManualSelection
from session.models import DRAWING_METHODS, FALLBACK_SPEED, METHODS_BY_ID, SPEED_MAX, SPEED_MIN
from ui.debug_console import DebugConsole
from ui.host_window import QtHostWindow
from ui.window_mode import MINI, WindowMode, WindowModeError, WindowModeManager

logger = logging.getLogger(__name__)

_COORD_LIMIT = 100_000
_COUNTDOWN_SEC = 3
_GEOMETRY_DEBOUNCE_MS = 400
_IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.webp)"


def _method_combo() -> QComboBox:
    combo = QComboBox()
    for m in DRAWING_METHODS:
        combo.addItem(m.name, m.id)
        combo.setItemData(combo.count() - 1, m.description, Qt.ItemDataRole.ToolTipRole)
    return combo


def _speed_spin() -> QSpinBox:
    spin = QSpinBox()
    spin.setRange(SPEED_MIN, SPEED_MAX)
    spin.setSuffix(" ms")
    return spin


def _coord_spin() -> QSpinBox:
    spin = QSpinBox()
    spin.setRange(-_COORD_LIMIT, _COORD_LIMIT)
    return spin


class MainWindow(QMainWindow):
    def __init__(
        self,
        *,
        controller: DrawingSessionController,
        preferences: PreferenceStore,
        diagnostics: DiagnosticsLog,
        cfg: AppConfig,
    ) -> None:
        super().__init__()
        self._ctl = controller
        self._prefs = preferences
        self._log = diagnostics

        self.setWindowTitle("SawBot")
        self.setAcceptDrops(True)

        self._modes = WindowModeManager(
            QtHostWindow(self),
            preferences,
            mini_size=(cfg.mini_width, cfg.mini_height),
            default_normal_size=(cfg.normal_width, cfg.normal_height),
        )
        self._modes.on_mode_changed(self._on_mode_changed)

        # Method combos / speed spins / start-stop exist on both pages.
        self._method_combos: list[QComboBox] = []
        self._speed_spins: list[QSpinBox] = []
        self._start_buttons: list[QPushButton] = []
        self._pin_boxes: list[QCheckBox] = []

        self._pages = QStackedWidget()
        self._full = self._build_full_page()
        self._mini = self._build_mini_page()
        self._pages.addWidget(self._full)
        self._pages.addWidget(self._mini)
        self.setCentralWidget(self._pages)

        self._console = DebugConsole(diagnostics, self)
        self.addDockWidget(Qt.DockWidgetArea.BottomDockWidgetArea, self._console)
        self._console.hide()
        QShortcut(QKeySequence(Qt.Key.Key_F10), self, activated=self._console.toggle)

        # Debounced persistence of Normal-mode geometry.
        self._geometry_timer = QTimer(self)
        self._geometry_timer.setSingleShot(True)
        self._geometry_timer.setInterval(_GEOMETRY_DEBOUNCE_MS)
        self._geometry_timer.timeout.connect(self._persist_geometry)  # type: ignore[arg-type]

        # Legacy corner capture countdown.
        self._countdown_timer = QTimer(self)
        self._countdown_timer.setInterval(1000)
        self._countdown_timer.timeout.connect(self._countdown_tick)  # type: ignore[arg-type]
        self._countdown_left = 0
        self._countdown_corner = 0

        self._subs: list[Subscription] = [
            controller.changes.subscribe(ctl.STATE_CHANGED, lambda _s: self._render_state()),
            controller.changes.subscribe(ctl.SELECTION_CHANGED, lambda _s: self._render_selection()),
            controller.changes.subscribe(ctl.IMAGE_CHANGED, lambda _p: self._render_image()),
            controller.changes.subscribe(ctl.METHOD_CHANGED, lambda _m: self._render_method()),
            preferences.on_change(self._on_pref_changed),
        ]

        self._modes.apply_initial()
        pos = preferences.window_prefs.get("lastPosition")
        if isinstance(pos, dict):
            self.move(int(pos.get("x", 0)), int(pos.get("y", 0)))

        self._render_state()
        self._render_selection()
        self._render_image()
        self._render_method()
        self._render_pin()

    def toggle_console(self) -> None:
        self._console.toggle()

    # ----------------------------
    # Page construction
    # ----------------------------

    def _build_header(self) -> QWidget:
        bar = QWidget()
        row = QHBoxLayout(bar)
        row.setContentsMargins(0, 0, 0, 0)
        self._state_label = QLabel()
        row.addWidget(QLabel("<b>SawBot</b>"))
        row.addWidget(self._state_label)
        row.addStretch(1)
        row.addWidget(self._pin_box())
        mini = QPushButton("Mini")
        mini.clicked.connect(self._toggle_mode)  # type: ignore[arg-type]
        row.addWidget(mini)
        for text, slot in (
            ("_", self.showMinimized),
            ("[]", self._toggle_maximized),
            ("X", self.close),
        ):
            b = QPushButton(text)
            b.setFixedWidth(28)
            b.clicked.connect(slot)  # type: ignore[arg-type]
            row.addWidget(b)
        return bar

    def _build_full_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(self._build_header())

        # Image
        image_box = QGroupBox("Image")
        image_row = QHBoxLayout(image_box)
        self._image_label = QLabel()
        pick = QPushButton("Choose...")
        pick.clicked.connect(self._pick_image)  # type: ignore[arg-type]
        clear = QPushButton("Clear")
        clear.clicked.connect(self._ctl.clear_image)  # type: ignore[arg-type]
        image_row.addWidget(self._image_label, 1)
        image_row.addWidget(pick)
        image_row.addWidget(clear)
        layout.addWidget(image_box)

        # Method + speed
        method_box = QGroupBox("Drawing method")
        method_form = QFormLayout(method_box)
        method_form.addRow("Method", self._method_combo())
        method_form.addRow("Speed", self._speed_spin())
        self._method_desc = QLabel()
        self._method_desc.setWordWrap(True)
        method_form.addRow(self._method_desc)
        layout.addWidget(method_box)

        # Area
        area_box = QGroupBox("Drawing area")
        grid = QGridLayout(area_box)
        self._x1, self._y1, self._x2, self._y2 = (_coord_spin() for _ in range(4))
        grid.addWidget(QLabel("Corner 1"), 0, 0)
        grid.addWidget(self._x1, 0, 1)
        grid.addWidget(self._y1, 0, 2)
        grid.addWidget(QLabel("Corner 2"), 1, 0)
        grid.addWidget(self._x2, 1, 1)
        grid.addWidget(self._y2, 1, 2)
        for spin in (self._x1, self._y1, self._x2, self._y2):
            spin.valueChanged.connect(self._on_corner_edited)  # type: ignore[arg-type]

        overlay = QPushButton("Select on screen")
        overlay.clicked.connect(lambda: self._ctl.selections.begin("overlay"))  # type: ignore[arg-type]
        snapshot = QPushButton("Select from screenshot")
        snapshot.clicked.connect(lambda: self._ctl.selections.begin("snapshot"))  # type: ignore[arg-type]
        corner1 = QPushButton("Corner 1 from mouse")
        corner1.clicked.connect(lambda: self._start_countdown(1))  # type: ignore[arg-type]
        corner2 = QPushButton("Corner 2 from mouse")
        corner2.clicked.connect(lambda: self._start_countdown(2))  # type: ignore[arg-type]
        grid.addWidget(overlay, 2, 0, 1, 2)
        grid.addWidget(snapshot, 2, 2)
        grid.addWidget(corner1, 3, 0, 1, 2)
        grid.addWidget(corner2, 3, 2)
        self._area_label = QLabel()
        self._countdown_label = QLabel()
        grid.addWidget(self._area_label, 4, 0, 1, 3)
        grid.addWidget(self._countdown_label, 5, 0, 1, 3)
        layout.addWidget(area_box)

        layout.addLayout(self._start_stop_row())
        layout.addStretch(1)
        return page

    def _build_mini_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(self._method_combo())
        layout.addWidget(self._speed_spin())
        layout.addLayout(self._start_stop_row())
        row = QHBoxLayout()
        row.addWidget(self._pin_box())
        expand = QPushButton("Expand")
        expand.clicked.connect(self._toggle_mode)  # type: ignore[arg-type]
        row.addWidget(expand)
        layout.addLayout(row)
        layout.addStretch(1)
        return page

    def _method_combo(self) -> QComboBox:
        combo = _method_combo()
        combo.currentIndexChanged.connect(lambda _i, c=combo: self._on_method_picked(c))  # type: ignore[arg-type]
        self._method_combos.append(combo)
        return combo

    def _speed_spin(self) -> QSpinBox:
        spin = _speed_spin()
        spin.valueChanged.connect(self._on_speed_edited)  # type: ignore[arg-type]
        self._speed_spins.append(spin)
        return spin

    def _start_stop_row(self) -> QHBoxLayout:
        row = QHBoxLayout()
        start = QPushButton("Start")
        start.clicked.connect(self._ctl.start_drawing)  # type: ignore[arg-type]
        stop = QPushButton("Stop")
        stop.clicked.connect(self._ctl.stop_drawing)  # type: ignore[arg-type]
        self._start_buttons.append(start)
        row.addWidget(start)
        row.addWidget(stop)
        return row

    def _pin_box(self) -> QCheckBox:
        box = QCheckBox("Pin")
        box.setToolTip("Keep the window above other windows")
        box.toggled.connect(self._on_pin_toggled)  # type: ignore[arg-type]
        self._pin_boxes.append(box)
        return box

    # ----------------------------
    # User intent
    # ----------------------------

    def _pick_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Choose image", "", _IMAGE_FILTER)
        if path:
            self._ctl.set_image(path)

    def _on_method_picked(self, combo: QComboBox) -> None:
        method_id = combo.currentData()
        if isinstance(method_id, str) and method_id != self._ctl.method:
            self._ctl.set_method(method_id)

    def _on_speed_edited(self, value: int) -> None:
        if self._prefs.method_speed(self._ctl.method) != int(value):
            self._prefs.set_method_speed(self._ctl.method, int(value))

    def _on_corner_edited(self, _value: int) -> None:
        self._ctl.set_manual_selection(
            ManualSelection(
                x1=self._x1.value(),
                y1=self._y1.value(),
                x2=self._x2.value(),
                y2=self._y2.value(),
            )
        )

    def _on_pin_toggled(self, checked: bool) -> None:
        if self._modes.mode == MINI:
            # Temporary while in Mini; leaving Mini restores the saved preference.
            self._modes.set_pinned(bool(checked))
            return
        if bool(checked) != self._modes.pinned:
            self._modes.set_pinned(bool(checked))
        self._render_pin()

    def _toggle_mode(self) -> None:
        try:
            self._modes.toggle()
        except WindowModeError as e:
            logger.error("%s", e)
            self._log.error(str(e))

    def _toggle_maximized(self) -> None:
        if self.isMaximized():
            self.showNormal()
        else:
            self.showMaximized()

    def _start_countdown(self, corner: int) -> None:
        self._countdown_corner = int(corner)
        self._countdown_left = _COUNTDOWN_SEC
        self._countdown_label.setText(f"Move the mouse to corner {corner}: {self._countdown_left}...")
        self._countdown_timer.start()

    def _countdown_tick(self) -> None:
        self._countdown_left -= 1
        if self._countdown_left > 0:
            self._countdown_label.setText(
                f"Move the mouse to corner {self._countdown_corner}: {self._countdown_left}..."
            )
            return
        self._countdown_timer.stop()
        self._countdown_label.setText("")
        self._ctl.capture_corner(self._countdown_corner)

    # ----------------------------
    # Rendering
    # ----------------------------

    def _render_state(self) -> None:
        state = self._ctl.state
        self._state_label.setText(state)
        for b in self._start_buttons:
            b.setEnabled(sm.can_start(state))

    def _render_selection(self) -> None:
        sel = self._ctl.manual_selection
        for spin, v in ((self._x1, sel.x1), (self._y1, sel.y1), (self._x2, sel.x2), (self._y2, sel.y2)):
            _set_quietly(spin.setValue, spin, v)
        r = sel.to_rect()
        self._area_label.setText(f"{r.width} x {r.height} at ({r.x}, {r.y})")

    def _render_image(self) -> None:
        path = self._ctl.image_path
        self._image_label.setText(os.path.basename(path) if path else "No image selected")

    def _render_method(self) -> None:
        method_id = self._ctl.method
        for combo in self._method_combos:
            _set_quietly(combo.setCurrentIndex, combo, combo.findData(method_id))
        m = METHODS_BY_ID.get(method_id)
        self._method_desc.setText(m.description if m is not None else "")
        self._render_speed()

    def _render_speed(self) -> None:
        stored = self._prefs.method_speed(self._ctl.method)
        value = FALLBACK_SPEED if stored is None else stored
        for spin in self._speed_spins:
            _set_quietly(spin.setValue, spin, value)

    def _render_pin(self) -> None:
        pinned = True if self._modes.mode == MINI else self._modes.pinned
        for box in self._pin_boxes:
            _set_quietly(box.setChecked, box, pinned)

    def _on_pref_changed(self, key: str) -> None:
        if key == "methodSpeeds":
            self._render_speed()

    def _on_mode_changed(self, mode: WindowMode) -> None:
        self._pages.setCurrentWidget(self._mini if mode == MINI else self._full)
        self._render_pin()

    # ----------------------------
    # Geometry persistence
    # ----------------------------

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._schedule_geometry_save()

    def moveEvent(self, event) -> None:  # type: ignore[override]
        super().moveEvent(event)
        self._schedule_geometry_save()

    def _schedule_geometry_save(self) -> None:
        if self._modes.mode != MINI and self.isVisible():
            self._geometry_timer.start()

    def _persist_geometry(self) -> None:
        if self._modes.mode == MINI or self.isMaximized() or self.isMinimized():
            return
        self._prefs.set_window_size(self.width(), self.height())
        self._prefs.set_window_position(self.x(), self.y())

    # ----------------------------
    # Drag & drop image
    # ----------------------------

    def dragEnterEvent(self, event) -> None:  # type: ignore[override]
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event) -> None:  # type: ignore[override]
        urls = event.mimeData().urls()
        if urls and urls[0].isLocalFile():
            self._ctl.set_image(urls[0].toLocalFile())
            event.acceptProposedAction()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._geometry_timer.stop()
        self._countdown_timer.stop()
        for sub in self._subs:
            sub.close()
        self._subs = []
        self._console.dispose()
        super().closeEvent(event)


def _set_quietly(setter: Callable[..., None], widget: QWidget, value: object) -> None:
    """Apply a model value to a widget without echoing it back as user input."""
    blocked = widget.blockSignals(True)
    try:
        setter(value)
    finally:
        widget.blockSignals(blocked)

