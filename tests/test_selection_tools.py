from __future__ import annotations

import pytest

from backend.protocol import CommandResult
from session.geometry import Rect
from session.selection import SelectionCoordinator
from ui.selection.overlay import logical_to_physical_rect
from ui.selection.snapshot import SnapshotStrategy


@pytest.mark.parametrize(
    "dpr, expected",
    [(1.0, Rect(100, 100, 50, 50)), (2.0, Rect(200, 200, 100, 100)), (1.25, Rect(125, 125, 62, 62))],
)
def test_overlay_rect_is_scaled_to_physical_pixels(dpr, expected):
    assert logical_to_physical_rect(Rect(100, 100, 50, 50), dpr) == expected


def test_snapshot_capture_failure_fails_the_session(backend, diagnostics):
    results: list = []
    coord = SelectionCoordinator(on_result=results.append, diagnostics=diagnostics)
    coord.register(SnapshotStrategy(backend=backend))

    session = coord.begin("snapshot")
    assert backend.names() == ["capture_screen"]
    backend.resolve("capture_screen", CommandResult.failure("HTTP 500"))

    assert not session.active
    assert results == []
    entries = diagnostics.by_category("SelectionToolFailure")
    assert len(entries) == 1
    assert "HTTP 500" in entries[0].message


def test_snapshot_capture_after_abort_is_discarded(backend, diagnostics):
    coord = SelectionCoordinator(on_result=lambda r: None, diagnostics=diagnostics)
    coord.register(SnapshotStrategy(backend=backend))

    coord.begin("snapshot")
    coord.abort()
    backend.resolve("capture_screen", CommandResult.failure("too late"))

    assert diagnostics.by_category("SelectionToolFailure") == []


@pytest.mark.qt_required
def test_overlay_escape_cancels_session(diagnostics):
    from PySide6.QtCore import QEvent, Qt
    from PySide6.QtGui import QKeyEvent
    from PySide6.QtWidgets import QApplication

    from ui.selection.overlay import OverlayStrategy

    _app = QApplication.instance() or QApplication([])
    published: list = []
    coord = SelectionCoordinator(on_result=lambda r: None, diagnostics=diagnostics)
    strategy = OverlayStrategy(publish=lambda name, payload: published.append((name, payload)))
    coord.register(strategy)

    session = coord.begin("overlay")
    window = strategy._window
    assert window is not None and window.isVisible()

    window.keyPressEvent(QKeyEvent(QEvent.Type.KeyPress, Qt.Key.Key_Escape, Qt.KeyboardModifier.NoModifier))

    assert not session.active
    assert not window.isVisible()
    assert published == []


@pytest.mark.qt_required
def test_finished_snapshot_dialogs_are_released(backend, diagnostics, tmp_path):
    from PySide6.QtCore import QEvent, Qt
    from PySide6.QtGui import QPixmap
    from PySide6.QtWidgets import QApplication, QWidget

    from backend.protocol import ScreenCapture
    from ui.selection.snapshot import SnapshotSelectionDialog

    app = QApplication.instance() or QApplication([])
    shot = tmp_path / "shot.png"
    pm = QPixmap(120, 90)
    pm.fill(Qt.GlobalColor.darkGray)
    assert pm.save(str(shot), "PNG")

    results: list = []
    host = QWidget()
    strategy = SnapshotStrategy(backend=backend, parent=host)
    coord = SelectionCoordinator(on_result=results.append, diagnostics=diagnostics)
    coord.register(strategy)

    for i in range(5):
        session = coord.begin("snapshot")
        backend.resolve("capture_screen", CommandResult.success(ScreenCapture(path=str(shot))))
        dlg = strategy._dialog
        assert dlg is not None
        if i % 2:
            dlg.reject()
        else:
            dlg._handle_selected(Rect(5, 5, 40, 30))
        assert not session.active
        app.sendPostedEvents(None, QEvent.Type.DeferredDelete)

    assert len(host.findChildren(SnapshotSelectionDialog)) <= 1
    assert len(results) == 3
