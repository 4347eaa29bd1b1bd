from __future__ import annotations

from session.geometry import Rect
from session.screens import virtual_desktop_bounds


def test_virtual_desktop_uses_combined_monitor():
    mons = [
        {"left": -1280, "top": 0, "width": 3200, "height": 1080},
        {"left": 0, "top": 0, "width": 1920, "height": 1080},
        {"left": -1280, "top": 0, "width": 1280, "height": 1024},
    ]
    assert virtual_desktop_bounds(mons) == Rect(-1280, 0, 3200, 1080)


def test_unknown_desktop_has_no_bounds():
    assert virtual_desktop_bounds([]) is None
    assert virtual_desktop_bounds([{"left": 0, "top": 0, "width": 0, "height": 0}]) is None
