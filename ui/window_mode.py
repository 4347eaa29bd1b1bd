"""Normal / Mini window mode switching.

Mini mode shrinks the main window to a compact control panel and pins it above
other windows so it stays reachable while the backend draws. Leaving Mini mode
restores the last normal size and the user's own always-on-top preference.

The manager talks to the window through the small `HostWindow` protocol so the
switching rules are testable without Qt; `ui.host_window.QtHostWindow` adapts a
real QWidget.
"""

from __future__ import annotations

import logging
from typing import Callable, Literal, Protocol, Tuple

from config.preferences import PreferenceStore

logger = logging.getLogger(__name__)

WindowMode = Literal["normal", "mini"]
NORMAL: WindowMode = "normal"
MINI: WindowMode = "mini"


class WindowModeError(RuntimeError):
    """The host window refused a resize or pin change; the mode was not switched."""


class HostWindow(Protocol):
    def size(self) -> Tuple[int, int]: ...

    def resize(self, width: int, height: int) -> None: ...

    def set_always_on_top(self, enabled: bool) -> None: ...


class WindowModeManager:
    """
    Owns the current mode and applies it to the host window.

    `toggle()` is atomic from the caller's point of view: if the host fails part way
    through, the previous geometry and pinning are restored (best effort), the mode
    stays unchanged and WindowModeError is raised.
    """

    def __init__(
        self,
        host: HostWindow,
        preferences: PreferenceStore,
        *,
        mini_size: Tuple[int, int],
        default_normal_size: Tuple[int, int],
    ) -> None:
        self._host = host
        self._prefs = preferences
        self._mini_size = (int(mini_size[0]), int(mini_size[1]))
        self._default_normal = (int(default_normal_size[0]), int(default_normal_size[1]))
        self._mode: WindowMode = NORMAL
        self._pinned = bool(preferences.window_prefs.get("alwaysOnTop", False))
        self._listeners: list[Callable[[WindowMode], None]] = []

    @property
    def mode(self) -> WindowMode:
        return self._mode

    @property
    def pinned(self) -> bool:
        return self._pinned

    def on_mode_changed(self, fn: Callable[[WindowMode], None]) -> None:
        self._listeners.append(fn)

    def apply_initial(self) -> None:
        """Apply the stored normal size and pin preference at startup."""
        w, h = self.normal_size()
        self._host.resize(w, h)
        self._host.set_always_on_top(self._pinned)

    def normal_size(self) -> Tuple[int, int]:
        size = self._prefs.window_prefs.get("lastSize")
        if isinstance(size, dict):
            w, h = int(size.get("width", 0)), int(size.get("height", 0))
            if w > 0 and h > 0:
                return w, h
        return self._default_normal

    def toggle(self) -> WindowMode:
        target: WindowMode = NORMAL if self._mode == MINI else MINI
        if target == MINI:
            self._enter_mini()
        else:
            self._leave_mini()
        self._mode = target
        logger.info("Window mode -> %s", target)
        for fn in list(self._listeners):
            fn(target)
        return target

    def set_pinned(self, enabled: bool) -> None:
        """
        Change always-on-top.

        In Normal mode this is the user's preference and is persisted. In Mini mode
        the window is pinned for the mode's sake; the change applies to the host only.
        """
        enabled = bool(enabled)
        self._host.set_always_on_top(enabled)
        if self._mode == NORMAL:
            self._pinned = enabled
            self._prefs.set_window_pref("alwaysOnTop", enabled)

    def _enter_mini(self) -> None:
        prev = self._host.size()
        try:
            # Remember where Normal mode was so leaving Mini restores it.
            if prev[0] > 0 and prev[1] > 0:
                self._prefs.set_window_size(prev[0], prev[1])
            self._host.resize(*self._mini_size)
            self._host.set_always_on_top(True)
        except Exception as e:
            self._rollback(prev, self._pinned)
            raise WindowModeError(f"Could not enter mini mode: {e}") from e

    def _leave_mini(self) -> None:
        prev = self._host.size()
        w, h = self.normal_size()
        try:
            self._host.resize(w, h)
            self._host.set_always_on_top(self._pinned)
            self._prefs.set_window_size(w, h)
        except Exception as e:
            self._rollback(prev, True)
            raise WindowModeError(f"Could not leave mini mode: {e}") from e

    def _rollback(self, size: Tuple[int, int], pinned: bool) -> None:
        try:
            self._host.resize(*size)
            self._host.set_always_on_top(pinned)
        except Exception:
            logger.exception("Window mode rollback failed")
