"""Named event fan-out with explicit subscription handles.

Backend-originated events (`emergency-stop`, `area-selected`, `backend-log`) and
in-process notifications (controller state/selection changes) all flow through an
`EventHub`. Subscribing returns a `Subscription`; closing it detaches the handler,
so an owner can release everything it registered when it is torn down and no
handler can fire against a dead component.

Threading model:
- Publishing is expected on the Qt/UI thread. Producers living on other threads
  (the event server) hand events over through `ui.qt_dispatch.QtEventRelay`.
- The handler table is still guarded by a lock so subscribe/close are safe from
  any thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EMERGENCY_STOP = "emergency-stop"
AREA_SELECTED = "area-selected"
BACKEND_LOG = "backend-log"

Handler = Callable[[Any], None]


class Subscription:
    """
    Handle for one registered handler.

    `close()` is idempotent; a closed subscription never fires again even if a
    publish is already iterating over a snapshot of the handler list.
    """

    def __init__(self, hub: "EventHub", name: str, handler: Handler) -> None:
        self._hub = hub
        self._name = name
        self._handler = handler
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._remove(self)

    def _deliver(self, payload: Any) -> None:
        if self._closed:
            return
        self._handler(payload)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class EventHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Subscription]] = {}

    def subscribe(self, name: str, handler: Handler) -> Subscription:
        sub = Subscription(self, str(name), handler)
        with self._lock:
            self._subs.setdefault(sub.name, []).append(sub)
        return sub

    def publish(self, name: str, payload: Optional[Any] = None) -> int:
        """
        Deliver `payload` to every open subscriber of `name`.

        Returns:
            int: number of handlers invoked.

        A failing handler is logged and does not prevent delivery to the others.
        """
        with self._lock:
            targets = list(self._subs.get(str(name), ()))

        delivered = 0
        for sub in targets:
            if sub.closed:
                continue
            try:
                sub._deliver(payload)
                delivered += 1
            except Exception:
                logger.exception("Handler for %r failed", name)
        return delivered

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            return sum(1 for s in self._subs.get(str(name), ()) if not s.closed)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.name)
            if not subs:
                return
            try:
                subs.remove(sub)
            except ValueError:
                return
            if not subs:
                del self._subs[sub.name]
