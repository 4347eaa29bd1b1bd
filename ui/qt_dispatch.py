"""Cross-thread hand-off onto the Qt/UI thread.

Backend command results arrive on short-lived worker threads and backend events on
the uvicorn thread. Neither may touch widgets or the session controller directly.
Both go through a QObject living on the UI thread: emitting its signal from any
thread queues the slot on the UI thread's event loop.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, Qt, Signal

from session.events import EventHub

logger = logging.getLogger(__name__)


class QtDispatcher(QObject):
    """
    Run zero-argument callables on the thread that owns this object.

    Create it on the UI thread and pass `dispatcher.dispatch` as the backend
    client's `dispatch` function.
    """

    _invoke = Signal(object)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._invoke.connect(self._run, Qt.ConnectionType.QueuedConnection)  # type: ignore[arg-type]

    def dispatch(self, fn: Callable[[], None]) -> None:
        self._invoke.emit(fn)

    def _run(self, fn: object) -> None:
        try:
            fn()  # type: ignore[operator]
        except Exception:
            logger.exception("Dispatched callback failed")


class QtEventRelay(QObject):
    """
    Publish named events into an EventHub on the UI thread.

    `relay.publish` has the `(name, payload)` signature the event server expects.
    """

    _event = Signal(str, object)

    def __init__(self, hub: EventHub, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._hub = hub
        self._event.connect(self._deliver, Qt.ConnectionType.QueuedConnection)  # type: ignore[arg-type]

    def publish(self, name: str, payload: Any = None) -> None:
        self._event.emit(str(name), payload)

    def _deliver(self, name: str, payload: object) -> None:
        self._hub.publish(name, payload)
