"""Session-level value types shared by the controller, the selection tools and the UI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Tuple

from session.geometry import Rect


@dataclass(frozen=True)
class DrawingMethod:
    """
    Catalogue entry for one backend drawing algorithm.

    `default_speed` seeds the preference store; speeds are per-action delays in ms
    within [SPEED_MIN, SPEED_MAX].
    """
    id: str
    name: str
    description: str
    default_speed: int


SPEED_MIN = 0
SPEED_MAX = 50

# Fallback when a method has no stored speed.
FALLBACK_SPEED = 1

DRAWING_METHODS: Tuple[DrawingMethod, ...] = (
    DrawingMethod("matrix", "Matrix Dot", "Fast scanning with dot placement. Best for high contrast images.", 1),
    DrawingMethod("dithering", "Floyd-Steinberg", "Error diffusion for shading and gradients.", 2),
    DrawingMethod("continuous", "Continuous Line", "Single continuous line drawing.", 2),
    DrawingMethod("spiral", "Spiral Raster", "Draws from the center outward in a spiral.", 1),
    DrawingMethod("stippling", "Stippling", "Varying dot density for realistic shading.", 10),
    DrawingMethod("contour", "Contour/Vector", "Traces outlines and fills shapes.", 2),
    DrawingMethod("human", "Human-like", "Jittered strokes that imitate a hand-drawn look.", 2),
)

METHODS_BY_ID: Dict[str, DrawingMethod] = {m.id: m for m in DRAWING_METHODS}
DEFAULT_METHOD = "matrix"


def default_method_speeds() -> Dict[str, int]:
    return {m.id: int(m.default_speed) for m in DRAWING_METHODS}


# Which acquisition path produced a selection.
SelectionSource = Literal["overlay", "snapshot", "mouse"]


@dataclass(frozen=True)
class SelectionResult:
    """Uniform output of every area-selection strategy."""
    source: SelectionSource
    rect: Rect


@dataclass(frozen=True)
class DrawRequest:
    """Payload of the backend `start_drawing` command."""
    image_path: str
    method: str
    speed: int
    x: int
    y: int
    width: int
    height: int

    def as_payload(self) -> Dict[str, object]:
        return {
            "image_path": self.image_path,
            "method": self.method,
            "speed": int(self.speed),
            "x": int(self.x),
            "y": int(self.y),
            "width": int(self.width),
            "height": int(self.height),
        }
