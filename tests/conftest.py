from __future__ import annotations

import os
from typing import List, Optional, Tuple

import pytest

from backend.protocol import CommandResult, OnDone
from config.preferences import PreferenceStore
from session.diagnostics import DiagnosticsLog
from session.models import DrawRequest


def pytest_runtest_setup(item):
    if item.get_closest_marker("qt_required"):
        if not os.getenv("QT_TESTS"):
            pytest.skip("QT_TESTS not set; skipping Qt-dependent test")


class FakeBackend:
    """
    Records every command and keeps its callback pending until the test resolves it.

    `auto` maps a command name to a CommandResult that is delivered immediately.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Optional[DrawRequest]]] = []
        self.pending: List[Tuple[str, OnDone]] = []
        self.auto: dict[str, CommandResult] = {}

    def _record(self, name: str, on_done: OnDone, request: Optional[DrawRequest] = None) -> None:
        self.calls.append((name, request))
        if name in self.auto:
            on_done(self.auto[name])
        else:
            self.pending.append((name, on_done))

    def start_drawing(self, request: DrawRequest, on_done: OnDone) -> None:
        self._record("start_drawing", on_done, request)

    def stop_drawing(self, on_done: OnDone) -> None:
        self._record("stop_drawing", on_done)

    def capture_screen(self, on_done: OnDone) -> None:
        self._record("capture_screen", on_done)

    def get_mouse_position(self, on_done: OnDone) -> None:
        self._record("get_mouse_position", on_done)

    def names(self) -> List[str]:
        return [n for n, _ in self.calls]

    def resolve(self, name: str, result: CommandResult) -> None:
        for i, (n, cb) in enumerate(self.pending):
            if n == name:
                del self.pending[i]
                cb(result)
                return
        raise AssertionError(f"no pending {name} command")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def diagnostics() -> DiagnosticsLog:
    return DiagnosticsLog()


@pytest.fixture
def prefs() -> PreferenceStore:
    return PreferenceStore(None)


@pytest.fixture
def image_file(tmp_path) -> str:
    p = tmp_path / "cat.png"
    p.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 64)
    return str(p)

