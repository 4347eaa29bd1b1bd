"""Rectangle and corner-selection helpers.

Every rectangle handed to the backend is derived here from two arbitrary corner
points, so the rest of the codebase can assume a normalized, non-negative shape
(x/y at the top-left, width/height >= 0).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Rect:
    """
    Normalized axis-aligned rectangle in absolute screen pixels.

    Notes:
    - Build instances through `rect_from_corners` / `ManualSelection.to_rect` so the
      invariants (x/y = min corner, width/height = absolute span) always hold.
    - A zero width or height is representable (the user may have typed identical
      corners) but is rejected when a session starts.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        """Exclusive right edge (x + width)."""
        return int(self.x + self.width)

    @property
    def bottom(self) -> int:
        """Exclusive bottom edge (y + height)."""
        return int(self.y + self.height)

    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def is_negative(self) -> bool:
        return self.x < 0 or self.y < 0

    def exceeds(self, bounds: "Rect") -> bool:
        """True when any edge of this rect lies outside `bounds`."""
        return (
            self.x < bounds.x
            or self.y < bounds.y
            or self.right > bounds.right
            or self.bottom > bounds.bottom
        )

    def as_payload(self) -> dict[str, int]:
        return {"x": int(self.x), "y": int(self.y), "width": int(self.width), "height": int(self.height)}


def rect_from_corners(x1: int, y1: int, x2: int, y2: int) -> Rect:
    """
    Normalize two arbitrary corner points into a Rect.

    The corners may be given in any order (drag up-left, down-right, ...); the
    result always has its origin at the smaller coordinate on each axis.
    """
    x1, y1, x2, y2 = int(x1), int(y1), int(x2), int(y2)
    return Rect(
        x=min(x1, x2),
        y=min(y1, y2),
        width=abs(x2 - x1),
        height=abs(y2 - y1),
    )


@dataclass(frozen=True)
class ManualSelection:
    """
    Raw corner pair as typed by the user or produced by a selection tool.

    This is the editable staging form; a Rect is derived from it on demand when
    a drawing session starts.
    """
    x1: int = 0
    y1: int = 0
    x2: int = 0
    y2: int = 0

    def to_rect(self) -> Rect:
        return rect_from_corners(self.x1, self.y1, self.x2, self.y2)

    @staticmethod
    def from_rect(rect: Rect) -> "ManualSelection":
        # Selection tools report x/y/width/height; store it as top-left + bottom-right.
        return ManualSelection(
            x1=int(rect.x),
            y1=int(rect.y),
            x2=int(rect.x + rect.width),
            y2=int(rect.y + rect.height),
        )

    def with_corner(self, which: int, x: int, y: int) -> "ManualSelection":
        """Return a copy with corner 1 or corner 2 replaced."""
        if which == 1:
            return ManualSelection(x1=int(x), y1=int(y), x2=self.x2, y2=self.y2)
        if which == 2:
            return ManualSelection(x1=self.x1, y1=self.y1, x2=int(x), y2=int(y))
        raise ValueError("corner must be 1 or 2")


def round_int(x: float) -> int:
    """
    Round a float to the nearest int (Python round() semantics).

    Used when converting DPR-scaled float coordinates into integer pixels.
    """
    return int(round(x))


def clamp_int(v: int, lo: int, hi: int) -> int:
    """Clamp an integer value to the inclusive range [lo, hi]."""
    return max(lo, min(hi, v))


def to_physical(x: float, y: float, dpr: float) -> Tuple[int, int]:
    """
    Convert a Qt logical-pixel point into physical pixels.

    Qt reports positions in device-independent (logical) units; the backend drives
    the pointer in physical pixels. The caller is responsible for passing the device
    pixel ratio of the surface the point was measured on.
    """
    scale = float(dpr) if dpr and dpr > 0 else 1.0
    return round_int(float(x) * scale), round_int(float(y) * scale)


def rect_from_payload(payload: object) -> Optional[Rect]:
    """
    Parse an `{x, y, width, height}` mapping (e.g. an `area-selected` event body).

    Returns None when the payload is not a mapping of four integer-like numbers or
    when width/height are negative. Booleans are rejected to avoid True -> 1 leakage.
    """
    if not isinstance(payload, dict):
        return None
    out: dict[str, int] = {}
    for key in ("x", "y", "width", "height"):
        v = payload.get(key)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        out[key] = int(v)
    if out["width"] < 0 or out["height"] < 0:
        return None
    return Rect(x=out["x"], y=out["y"], width=out["width"], height=out["height"])
