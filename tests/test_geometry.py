from __future__ import annotations

import itertools

import pytest

from session.geometry import ManualSelection, Rect, rect_from_corners, rect_from_payload, to_physical


@pytest.mark.parametrize(
    "x1, y1, x2, y2",
    list(itertools.product((-20, 0, 37), (-5, 0, 90), (-20, 12, 37), (0, 45, -7))),
)
def test_rect_from_corners_is_normalized(x1, y1, x2, y2):
    r = rect_from_corners(x1, y1, x2, y2)
    assert r.x == min(x1, x2)
    assert r.y == min(y1, y2)
    assert r.width == abs(x2 - x1)
    assert r.height == abs(y2 - y1)


def test_manual_selection_from_rect_uses_far_corner():
    sel = ManualSelection.from_rect(Rect(x=100, y=100, width=50, height=50))
    assert sel == ManualSelection(x1=100, y1=100, x2=150, y2=150)
    assert sel.to_rect() == Rect(100, 100, 50, 50)


def test_with_corner_replaces_only_one_corner():
    sel = ManualSelection(1, 2, 3, 4)
    assert sel.with_corner(1, 10, 20) == ManualSelection(10, 20, 3, 4)
    assert sel.with_corner(2, 30, 40) == ManualSelection(1, 2, 30, 40)
    with pytest.raises(ValueError):
        sel.with_corner(3, 0, 0)


def test_rect_predicates():
    bounds = Rect(0, 0, 1920, 1080)
    assert Rect(0, 0, 0, 10).is_degenerate()
    assert Rect(-1, 5, 10, 10).is_negative()
    assert Rect(1900, 0, 40, 10).exceeds(bounds)
    assert not Rect(0, 0, 1920, 1080).exceeds(bounds)


def test_to_physical_scales_by_device_pixel_ratio():
    assert to_physical(100, 50, 1.5) == (150, 75)
    assert to_physical(10, 10, 0) == (10, 10)


@pytest.mark.parametrize(
    "payload",
    [None, [], {"x": 1, "y": 2, "width": 3}, {"x": True, "y": 0, "width": 1, "height": 1}, {"x": 0, "y": 0, "width": -1, "height": 5}],
)
def test_rect_from_payload_rejects_bad_bodies(payload):
    assert rect_from_payload(payload) is None


def test_rect_from_payload_accepts_numbers():
    assert rect_from_payload({"x": 5, "y": 6.0, "width": 70, "height": 80}) == Rect(5, 6, 70, 80)
