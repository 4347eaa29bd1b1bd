"""Screen geometry and DPI helpers.

The backend drives the pointer in physical virtual-desktop pixels, the same space
MSS reports monitors in. These helpers give the controller the bounds it warns
against and make the process DPI aware on Windows so Qt, MSS and the backend agree
on what a pixel is.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Dict, List, Optional

import mss

from session.geometry import Rect

logger = logging.getLogger(__name__)


def list_monitors() -> List[Dict[str, int]]:
    """
    Monitor rectangles as reported by MSS, in physical pixels.

    Index 0 is the bounding box of every monitor; 1..N are the individual screens.
    An empty list means MSS could not reach a display (headless CI, locked session).
    """
    try:
        with mss.mss() as sct:
            mons = list(sct.monitors)
    except Exception:
        logger.debug("MSS monitor enumeration failed", exc_info=True)
        return []

    keys = ("left", "top", "width", "height")
    return [{k: int(m.get(k, 0)) for k in keys} for m in mons]


def virtual_desktop_bounds(monitors: Optional[List[Dict[str, int]]] = None) -> Optional[Rect]:
    """
    Bounding box of all monitors in physical pixels, or None when unknown.

    On multi-monitor setups the origin is not guaranteed to be (0, 0); monitors left
    of / above the primary one produce negative coordinates.
    """
    mons = list_monitors() if monitors is None else monitors
    if not mons:
        return None
    m = mons[0]
    width = int(m.get("width", 0))
    height = int(m.get("height", 0))
    if width <= 0 or height <= 0:
        return None
    return Rect(x=int(m.get("left", 0)), y=int(m.get("top", 0)), width=width, height=height)


def set_process_dpi_awareness() -> None:
    """
    Enable per-monitor DPI awareness for the current process on Windows.

    Without it Windows applies DPI virtualization and the coordinates Qt reports no
    longer match the physical pixels the backend moves the pointer in.

    Call before the QApplication is created. On other platforms this is a no-op.
    """
    try:
        # 2 = PROCESS_PER_MONITOR_DPI_AWARE
        ctypes.windll.shcore.SetProcessDpiAwareness(2)  # type: ignore[attr-defined]
    except Exception:
        # Older Windows: legacy system-DPI awareness. Non-Windows: no windll at all.
        try:
            ctypes.windll.user32.SetProcessDPIAware()  # type: ignore[attr-defined]
        except Exception:
            return
