from __future__ import annotations

from session.geometry import Rect
from session.selection import DragTracker, SelectionCoordinator


class StubStrategy:
    def __init__(self, source: str, *, fail_on_open: bool = False) -> None:
        self.source = source
        self.session = None
        self.opened = 0
        self.closed = 0
        self._fail_on_open = fail_on_open

    def open(self, session) -> None:
        self.opened += 1
        if self._fail_on_open:
            raise RuntimeError("no display")
        self.session = session

    def close(self) -> None:
        self.closed += 1


def _coordinator(diagnostics):
    results: list = []
    coord = SelectionCoordinator(on_result=results.append, diagnostics=diagnostics)
    overlay = StubStrategy("overlay")
    snapshot = StubStrategy("snapshot")
    coord.register(overlay)
    coord.register(snapshot)
    return coord, overlay, snapshot, results


# ----------------------------
# DragTracker
# ----------------------------

def test_drag_from_absolute_point_produces_rect():
    t = DragTracker(min_width=10, min_height=10)
    t.press(100, 100)
    t.move(120, 130)
    assert t.current() == Rect(100, 100, 20, 30)

    assert t.release(150, 150) == Rect(100, 100, 50, 50)
    assert not t.active


def test_drag_up_and_left_is_normalized():
    t = DragTracker()
    t.press(300, 200)
    assert t.release(250, 120) == Rect(250, 120, 50, 80)


def test_drag_must_exceed_minimum_on_both_axes():
    t = DragTracker(min_width=10, min_height=10)
    t.press(0, 0)
    assert t.release(10, 200) is None
    t.press(0, 0)
    assert t.release(11, 11) == Rect(0, 0, 11, 11)


def test_cancelled_drag_yields_nothing():
    t = DragTracker()
    t.press(5, 5)
    t.cancel()
    assert t.current() is None
    assert t.release(50, 50) is None


# ----------------------------
# Coordinator
# ----------------------------

def test_commit_reports_tagged_result_and_closes(diagnostics):
    coord, overlay, _snapshot, results = _coordinator(diagnostics)

    session = coord.begin("snapshot")
    assert session is not None
    assert session.commit(Rect(0, 0, 40, 30))

    assert [(r.source, r.rect) for r in results] == [("snapshot", Rect(0, 0, 40, 30))]
    assert coord.active_source is None
    assert overlay.closed == 0


def test_second_begin_is_rejected_while_active(diagnostics):
    coord, overlay, snapshot, _results = _coordinator(diagnostics)

    assert coord.begin("overlay") is not None
    assert coord.begin("snapshot") is None

    assert snapshot.opened == 0
    assert coord.active_source == "overlay"
    assert any(e.level == "warn" for e in diagnostics.entries())


def test_stale_session_is_inert(diagnostics):
    coord, _overlay, _snapshot, results = _coordinator(diagnostics)
    first = coord.begin("snapshot")
    first.cancel()
    second = coord.begin("snapshot")

    assert first.commit(Rect(1, 1, 50, 50)) is False
    first.fail("late")
    assert results == []
    assert second.active
    assert diagnostics.by_category("SelectionToolFailure") == []


def test_degenerate_commit_keeps_session_open(diagnostics):
    coord, _overlay, _snapshot, results = _coordinator(diagnostics)
    session = coord.begin("snapshot")

    assert session.commit(Rect(5, 5, 0, 20)) is False
    assert session.active
    assert results == []


def test_fail_logs_selection_tool_failure(diagnostics):
    coord, _overlay, snapshot, results = _coordinator(diagnostics)
    session = coord.begin("snapshot")

    session.fail("Screen capture failed: HTTP 500")

    assert results == []
    assert snapshot.closed == 1
    entries = diagnostics.by_category("SelectionToolFailure")
    assert len(entries) == 1
    assert entries[0].level == "error"


def test_strategy_that_cannot_open_fails_the_session(diagnostics):
    results: list = []
    coord = SelectionCoordinator(on_result=results.append, diagnostics=diagnostics)
    coord.register(StubStrategy("overlay", fail_on_open=True))

    assert coord.begin("overlay") is None
    assert coord.active_source is None
    assert len(diagnostics.by_category("SelectionToolFailure")) == 1


def test_area_selected_commits_open_overlay(diagnostics):
    coord, overlay, _snapshot, results = _coordinator(diagnostics)
    coord.begin("overlay")

    assert coord.handle_area_selected({"x": 100, "y": 100, "width": 50, "height": 50})

    assert results[0].source == "overlay"
    assert results[0].rect == Rect(100, 100, 50, 50)
    assert overlay.closed == 1


def test_small_area_keeps_overlay_open(diagnostics):
    coord, overlay, _snapshot, results = _coordinator(diagnostics)
    session = coord.begin("overlay")

    assert not coord.handle_area_selected({"x": 100, "y": 100, "width": 10, "height": 80})

    assert results == []
    assert overlay.closed == 0
    assert session.active


def test_area_selected_ignored_during_snapshot(diagnostics):
    coord, _overlay, _snapshot, results = _coordinator(diagnostics)
    coord.begin("snapshot")

    assert not coord.handle_area_selected({"x": 0, "y": 0, "width": 400, "height": 300})
    assert results == []
    assert coord.active_source == "snapshot"


def test_abort_cancels_running_selection(diagnostics):
    coord, overlay, _snapshot, results = _coordinator(diagnostics)
    coord.begin("overlay")

    coord.abort()

    assert coord.active_source is None
    assert overlay.closed == 1
    assert results == []
