"""Drawing session controller.

Single writer of the session state machine (IDLE -> DRAWING -> IDLE, with the
transient EMERGENCY_STOPPED on a backend-originated interrupt). It also owns the
staged inputs of the next session: image path, drawing method and the manual
corner selection.

Why a controller:
- Qt widgets, the event server and both selection tools all feed into the same
  session. Keeping every state change in one Qt-free class makes the ordering
  rules (validation order, two-phase start, emergency override) testable without
  a display.

Threading:
- Every public method and every backend `on_done` callback runs on the UI thread.
  The backend client and the event relay are responsible for getting there.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Callable, Optional

from backend.protocol import CommandResult, DrawingBackend
from config.preferences import PreferenceStore
from session import state_machine as sm
from session.diagnostics import DiagnosticsLog
from session.errors import (
    BackendCommandFailure,
    InvalidGeometry,
    MissingInput,
    SessionBusy,
    SessionError,
)
from session.events import AREA_SELECTED, EMERGENCY_STOP, EventHub, Subscription
from session.geometry import ManualSelection, Rect
from session.models import DEFAULT_METHOD, FALLBACK_SPEED, METHODS_BY_ID, DrawRequest, SelectionResult
from session.selection import SelectionCoordinator

logger = logging.getLogger(__name__)

# Events published on `controller.changes`.
STATE_CHANGED = "state-changed"
SELECTION_CHANGED = "selection-changed"
IMAGE_CHANGED = "image-changed"
METHOD_CHANGED = "method-changed"

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")
MAX_IMAGE_BYTES = 10 * 1024 * 1024

# Called with an `ack` callable; the alert invokes it once it has been shown.
AlertFn = Callable[[Callable[[], None]], None]
BoundsFn = Callable[[], Optional[Rect]]


@dataclass
class _PendingStart:
    """
    One in-flight start command.

    The tentative DRAWING transition happens before the command is issued; the
    backend response then confirms or rolls back. If the attempt is superseded in
    the meantime (emergency stop, successful stop), the token is invalidated and
    the late response leaves state alone.
    """
    request: DrawRequest
    valid: bool = True


class DrawingSessionController:
    def __init__(
        self,
        *,
        backend: DrawingBackend,
        preferences: PreferenceStore,
        diagnostics: DiagnosticsLog,
        screen_bounds: Optional[BoundsFn] = None,
        alert: Optional[AlertFn] = None,
        overlay_min_px: int = 10,
    ) -> None:
        self._backend = backend
        self._prefs = preferences
        self._log = diagnostics
        self._screen_bounds = screen_bounds
        self._alert = alert

        self._state: sm.SessionState = sm.IDLE
        self._image_path: Optional[str] = None
        self._method: str = DEFAULT_METHOD
        self._selection = ManualSelection()
        self._pending: Optional[_PendingStart] = None

        self.changes = EventHub()
        self.selections = SelectionCoordinator(
            on_result=self.apply_selection,
            diagnostics=diagnostics,
            overlay_min_px=overlay_min_px,
        )

        self._subs: list[Subscription] = []

    # ----------------------------
    # Subscriptions
    # ----------------------------

    def attach(self, hub: EventHub) -> None:
        """Subscribe to backend events once; repeated calls are ignored."""
        if self._subs:
            return
        self._subs = [
            hub.subscribe(EMERGENCY_STOP, self._on_emergency_stop),
            hub.subscribe(AREA_SELECTED, self.selections.handle_area_selected),
        ]

    def detach(self) -> None:
        """Release every subscription and any running selection."""
        for sub in self._subs:
            sub.close()
        self._subs = []
        self.selections.abort()

    @property
    def attached(self) -> bool:
        return bool(self._subs)

    # ----------------------------
    # Read-only state
    # ----------------------------

    @property
    def state(self) -> sm.SessionState:
        return self._state

    @property
    def image_path(self) -> Optional[str]:
        return self._image_path

    @property
    def method(self) -> str:
        return self._method

    @property
    def manual_selection(self) -> ManualSelection:
        return self._selection

    @property
    def start_in_flight(self) -> bool:
        return self._pending is not None and self._pending.valid

    # ----------------------------
    # Staged inputs
    # ----------------------------

    def set_image(self, path: str) -> bool:
        """
        Stage an image for the next session.

        Accepts png/jpg/jpeg/webp files up to 10 MB. Anything else is reported as
        MissingInput and leaves the previous image in place.
        """
        p = str(path or "").strip()
        try:
            if not p:
                raise MissingInput("No image file given")
            if not p.lower().endswith(IMAGE_EXTENSIONS):
                raise MissingInput(f"Unsupported image type: {os.path.basename(p)}")
            try:
                size = os.path.getsize(p)
            except OSError as e:
                raise MissingInput(f"Cannot read image {p}: {e}") from e
            if size > MAX_IMAGE_BYTES:
                raise MissingInput(f"Image too large ({size} bytes, max {MAX_IMAGE_BYTES})")
        except MissingInput as e:
            self._report(e)
            return False

        self._image_path = p
        self._log.info(f"Image selected: {os.path.basename(p)}")
        self.changes.publish(IMAGE_CHANGED, p)
        return True

    def clear_image(self) -> None:
        if self._image_path is None:
            return
        self._image_path = None
        self.changes.publish(IMAGE_CHANGED, None)

    def set_method(self, method_id: str) -> None:
        if method_id not in METHODS_BY_ID:
            raise ValueError(f"Unknown drawing method: {method_id!r}")
        if method_id == self._method:
            return
        self._method = method_id
        self.changes.publish(METHOD_CHANGED, method_id)

    def set_manual_selection(self, selection: ManualSelection) -> None:
        if selection == self._selection:
            return
        self._selection = selection
        self.changes.publish(SELECTION_CHANGED, selection)

    def update_corner(self, which: int, x: int, y: int) -> None:
        self.set_manual_selection(self._selection.with_corner(which, x, y))

    def apply_selection(self, result: SelectionResult) -> None:
        """Result callback shared by every selection strategy."""
        logger.info("Selection from %s: %r", result.source, result.rect)
        self.set_manual_selection(ManualSelection.from_rect(result.rect))

    def capture_corner(self, which: int) -> None:
        """Read the pointer position from the backend into corner 1 or 2."""
        if which not in (1, 2):
            raise ValueError("corner must be 1 or 2")

        def done(res: CommandResult) -> None:
            if not res.ok:
                self._report(BackendCommandFailure(f"Mouse position failed: {res.error}"))
                return
            x, y = res.value
            self.update_corner(which, x, y)
            self._log.info(f"Corner {which} captured at ({x}, {y})")

        self._backend.get_mouse_position(done)

    # ----------------------------
    # Session lifecycle
    # ----------------------------

    def start_drawing(self) -> bool:
        """
        Validate the staged inputs and begin a session.

        Checks run in order and stop at the first failure, which is logged once:
          0) state must be IDLE (SessionBusy)
          1) an image must be staged (MissingInput)
          2) the selection must have non-zero width and height (InvalidGeometry)
          3) the selection must not start at negative coordinates (InvalidGeometry)
          4) exceeding the known screen bounds only warns

        Returns:
            bool: True when the start command was issued.
        """
        try:
            request = self._build_request()
        except SessionError as e:
            self._report(e)
            return False

        pending = _PendingStart(request=request)
        self._pending = pending
        self._set_state(sm.DRAWING)
        logger.info("Starting %s drawing at %s", request.method, request.as_payload())

        def done(res: CommandResult) -> None:
            self._on_start_done(pending, res)

        self._backend.start_drawing(request, done)
        return True

    def stop_drawing(self) -> None:
        """Issue stop regardless of state; only a confirmed stop returns to IDLE."""

        def done(res: CommandResult) -> None:
            if not res.ok:
                self._report(BackendCommandFailure(f"Stop failed: {res.error}"))
                return
            self._invalidate_pending()
            if self._state != sm.EMERGENCY_STOPPED:
                self._set_state(sm.IDLE)
            self._log.info("Drawing stopped")

        self._backend.stop_drawing(done)

    def _build_request(self) -> DrawRequest:
        if not sm.can_start(self._state):
            raise SessionBusy(f"Cannot start while {self._state}")
        if not self._image_path:
            raise MissingInput("Select an image before starting")

        rect = self._selection.to_rect()
        if rect.is_degenerate():
            raise InvalidGeometry(f"Selection has no area ({rect.width}x{rect.height})")
        if rect.is_negative():
            raise InvalidGeometry(f"Selection starts off-screen at ({rect.x}, {rect.y})")

        bounds = self._screen_bounds() if self._screen_bounds is not None else None
        if bounds is not None and rect.exceeds(bounds):
            msg = (
                f"Selection {rect.x},{rect.y} {rect.width}x{rect.height} extends beyond "
                f"screen {bounds.width}x{bounds.height}"
            )
            logger.warning(msg)
            self._log.warn(msg)

        stored = self._prefs.method_speed(self._method)
        speed = FALLBACK_SPEED if stored is None else int(stored)

        return DrawRequest(
            image_path=self._image_path,
            method=self._method,
            speed=speed,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
        )

    def _on_start_done(self, pending: _PendingStart, res: CommandResult) -> None:
        if not pending.valid:
            logger.info("Ignoring late start response (ok=%s)", res.ok)
            return
        pending.valid = False
        if self._pending is pending:
            self._pending = None

        if res.ok:
            self._log.info(f"Drawing started ({pending.request.method}, speed {pending.request.speed})")
            return

        self._set_state(sm.IDLE)
        self._report(BackendCommandFailure(f"Start failed: {res.error}"))

    # ----------------------------
    # Emergency stop
    # ----------------------------

    def _on_emergency_stop(self, _payload: object = None) -> None:
        decision = sm.decide_emergency(state=self._state, start_in_flight=self.start_in_flight)
        if decision.collapsed:
            logger.debug("Emergency stop collapsed into pending acknowledgment")
            return

        self._invalidate_pending()
        self.selections.abort()
        self._set_state(decision.next_state)

        what = "drawing interrupted" if decision.interrupted else "no session was active"
        logger.error("Emergency stop received (%s)", what)
        self._log.error(f"Emergency stop received ({what})")

        if self._alert is None:
            self._ack_emergency()
            return
        try:
            self._alert(self._ack_emergency)
        except Exception:
            logger.exception("Emergency alert failed")
            self._ack_emergency()

    def _ack_emergency(self) -> None:
        if self._state == sm.EMERGENCY_STOPPED:
            self._set_state(sm.IDLE)

    # ----------------------------
    # Internals
    # ----------------------------

    def _invalidate_pending(self) -> None:
        if self._pending is not None:
            self._pending.valid = False
            self._pending = None

    def _set_state(self, state: sm.SessionState) -> None:
        if state == self._state:
            return
        prev = self._state
        self._state = state
        logger.debug("Session state %s -> %s", prev, state)
        self.changes.publish(STATE_CHANGED, state)

    def _report(self, err: SessionError) -> None:
        level = "warn" if isinstance(err, SessionBusy) else "error"
        logger.log(logging.WARNING if level == "warn" else logging.ERROR, "%s: %s", err.category, err)
        self._log.add(level, str(err), category=err.category)
