"""Command boundary between the control surface and the automation backend.

The backend runs out of process. Every command is a single asynchronous round trip:
the caller passes an `on_done` callback and gets exactly one `CommandResult` back,
delivered on the UI thread. Nothing is retried implicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from session.models import DrawRequest


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of one backend command.

    Attributes:
        ok: True when the round trip succeeded and the backend accepted the command.
        value: command-specific payload (ScreenCapture, (x, y) tuple, ...) or None.
        error: human-readable failure reason when ok is False.
    """
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @staticmethod
    def success(value: Any = None) -> "CommandResult":
        return CommandResult(ok=True, value=value)

    @staticmethod
    def failure(error: str) -> "CommandResult":
        return CommandResult(ok=False, error=str(error))


@dataclass(frozen=True)
class ScreenCapture:
    """
    Full-screen image returned by `capture_screen`.

    Exactly one of `data` (encoded image bytes) or `path` (file written by the
    backend) is set.
    """
    data: Optional[bytes] = None
    path: Optional[str] = None


OnDone = Callable[[CommandResult], None]


class DrawingBackend(Protocol):
    def start_drawing(self, request: DrawRequest, on_done: OnDone) -> None: ...

    def stop_drawing(self, on_done: OnDone) -> None: ...

    def capture_screen(self, on_done: OnDone) -> None: ...

    def get_mouse_position(self, on_done: OnDone) -> None: ...
