"""Area-selection coordination.

Two strategies acquire a rectangle for the drawing session:
- "overlay": a fullscreen transparent surface the user drags on directly.
- "snapshot": a captured screenshot shown 1:1 in a modal dialog.

Both are opened through `SelectionCoordinator.begin(source)` with a
`SelectionSession` handle and end by calling exactly one of `commit(rect)`,
`cancel()` or `fail(message)` on it. The coordinator turns a commit into a single
`SelectionResult` callback, so the controller handles every strategy the same way.

Only one session may be active at a time; a stale handle (from a session that has
already ended) is inert.

The drag arithmetic shared by both Qt surfaces lives in `DragTracker`, which has no
Qt dependency and is tested directly.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, Dict, Optional, Protocol

from session.diagnostics import DiagnosticsLog
from session.errors import SelectionToolFailure
from session.geometry import Rect, rect_from_corners, rect_from_payload
from session.models import SelectionResult, SelectionSource

logger = logging.getLogger(__name__)

# Overlay results must exceed this on both axes (absolute px).
OVERLAY_MIN_SIZE_PX = 10


class SelectionStrategy(Protocol):
    """
    One way of acquiring a rectangle.

    `open` must not block; the strategy keeps the session handle and reports back on
    it later. `close` hides whatever surface the strategy put up and must be safe to
    call when nothing is shown.
    """

    source: SelectionSource

    def open(self, session: "SelectionSession") -> None: ...

    def close(self) -> None: ...


class SelectionSession:
    """
    Handle given to a strategy for the duration of one selection.

    Every method becomes a no-op once the session has ended (committed, cancelled,
    failed, or superseded), so late callbacks from a hidden surface cannot leak a
    result into the controller.
    """

    def __init__(self, coordinator: "SelectionCoordinator", source: SelectionSource, token: int) -> None:
        self._coordinator = coordinator
        self._source = source
        self._token = token

    @property
    def source(self) -> SelectionSource:
        return self._source

    @property
    def active(self) -> bool:
        return self._coordinator._is_current(self)

    def commit(self, rect: Rect) -> bool:
        """
        Report the selected rectangle and end the session.

        Returns:
            bool: True when the result was accepted. Degenerate rectangles are refused
            and the session stays open.
        """
        return self._coordinator._commit(self, rect)

    def cancel(self) -> None:
        self._coordinator._end(self, reason="cancelled")

    def fail(self, message: str) -> None:
        self._coordinator._fail(self, message)


class SelectionCoordinator:
    """
    Owns the registered strategies and enforces "one selection at a time".

    Args:
        on_result: called once per committed selection.
        diagnostics: receives warn/error entries for rejected begins and tool failures.
        overlay_min_px: side length an overlay result must exceed on both axes.
    """

    def __init__(
        self,
        *,
        on_result: Callable[[SelectionResult], None],
        diagnostics: DiagnosticsLog,
        overlay_min_px: int = OVERLAY_MIN_SIZE_PX,
    ) -> None:
        self._on_result = on_result
        self._diagnostics = diagnostics
        self._overlay_min_px = int(overlay_min_px)
        self._strategies: Dict[str, SelectionStrategy] = {}
        self._current: Optional[SelectionSession] = None
        self._next_token = 0

    def register(self, strategy: SelectionStrategy) -> None:
        self._strategies[str(strategy.source)] = strategy

    @property
    def active_source(self) -> Optional[SelectionSource]:
        return None if self._current is None else self._current.source

    def begin(self, source: SelectionSource) -> Optional[SelectionSession]:
        """
        Open the strategy registered for `source`.

        Returns:
            The new session, or None when another selection is already running, the
            source is unknown, or the strategy failed to open.
        """
        if self._current is not None:
            msg = f"Selection already in progress ({self._current.source}); ignoring {source} request"
            logger.warning(msg)
            self._diagnostics.warn(msg)
            return None

        strategy = self._strategies.get(str(source))
        if strategy is None:
            self._report_failure(f"No selection tool registered for {source!r}")
            return None

        self._next_token += 1
        session = SelectionSession(self, source, self._next_token)
        self._current = session
        logger.debug("Selection started (%s)", source)
        try:
            strategy.open(session)
        except Exception as e:
            logger.exception("Selection tool %s failed to open", source)
            session.fail(f"Could not open {source} selection: {e}")
            return None
        return session if self._is_current(session) else None

    def abort(self) -> None:
        """Cancel whatever selection is running (window teardown, emergency stop)."""
        if self._current is not None:
            self._current.cancel()

    def handle_area_selected(self, payload: object) -> bool:
        """
        Consume an `area-selected` event body `{x, y, width, height}`.

        - Rejected (logged, overlay left open) when malformed or when either side is
          not larger than the overlay minimum.
        - Ignored while a snapshot selection owns the session.
        - Otherwise applied as an overlay result; an open overlay session is ended.
        """
        rect = rect_from_payload(payload)
        if rect is None:
            logger.warning("Ignoring malformed area-selected payload: %r", payload)
            self._diagnostics.warn(f"Ignoring malformed area selection: {payload!r}")
            return False

        if rect.width <= self._overlay_min_px or rect.height <= self._overlay_min_px:
            logger.debug("Overlay selection too small: %sx%s", rect.width, rect.height)
            return False

        current = self._current
        if current is not None and current.source != "overlay":
            logger.info("Ignoring area-selected while %s selection is active", current.source)
            return False

        if current is not None:
            return current.commit(rect)

        # Area selected by the backend's own overlay with no local session open.
        self._on_result(SelectionResult(source="overlay", rect=rect))
        return True

    # ----------------------------
    # Session callbacks
    # ----------------------------

    def _is_current(self, session: SelectionSession) -> bool:
        return self._current is session

    def _commit(self, session: SelectionSession, rect: Rect) -> bool:
        if not self._is_current(session):
            return False
        if rect.is_degenerate():
            logger.debug("Refusing degenerate %s selection %r", session.source, rect)
            return False
        self._end(session, reason="committed")
        self._diagnostics.info(
            f"Area selected via {session.source}: {rect.width}x{rect.height} at ({rect.x}, {rect.y})"
        )
        self._on_result(SelectionResult(source=session.source, rect=rect))
        return True

    def _fail(self, session: SelectionSession, message: str) -> None:
        if not self._is_current(session):
            return
        self._end(session, reason="failed")
        self._report_failure(message)

    def _end(self, session: SelectionSession, *, reason: str) -> None:
        if not self._is_current(session):
            return
        self._current = None
        strategy = self._strategies.get(str(session.source))
        if strategy is not None:
            try:
                strategy.close()
            except Exception:
                logger.exception("Selection tool %s failed to close", session.source)
        logger.debug("Selection %s (%s)", reason, session.source)

    def _report_failure(self, message: str) -> None:
        logger.error("%s: %s", SelectionToolFailure.category, message)
        self._diagnostics.error(message, category=SelectionToolFailure.category)


@dataclass
class _DragState:
    anchor_x: int
    anchor_y: int
    cur_x: int
    cur_y: int


class DragTracker:
    """
    Press / move / release gesture to rectangle.

    Coordinates are whatever space the caller feeds in (absolute physical pixels for
    the overlay, image pixels for the snapshot dialog). A released gesture produces a
    rectangle only if both sides strictly exceed the configured minimum; anything
    smaller cancels that gesture and leaves the tracker ready for the next press.
    """

    def __init__(self, *, min_width: int = 0, min_height: int = 0) -> None:
        self._min_w = int(min_width)
        self._min_h = int(min_height)
        self._drag: Optional[_DragState] = None

    @property
    def active(self) -> bool:
        return self._drag is not None

    def current(self) -> Optional[Rect]:
        """Live rectangle of the gesture in progress, if any."""
        d = self._drag
        if d is None:
            return None
        return rect_from_corners(d.anchor_x, d.anchor_y, d.cur_x, d.cur_y)

    def press(self, x: int, y: int) -> None:
        self._drag = _DragState(int(x), int(y), int(x), int(y))

    def move(self, x: int, y: int) -> Optional[Rect]:
        if self._drag is None:
            return None
        self._drag.cur_x = int(x)
        self._drag.cur_y = int(y)
        return self.current()

    def release(self, x: int, y: int) -> Optional[Rect]:
        if self._drag is None:
            return None
        self.move(x, y)
        rect = self.current()
        self._drag = None
        if rect is None or rect.width <= self._min_w or rect.height <= self._min_h:
            return None
        return rect

    def cancel(self) -> None:
        self._drag = None
