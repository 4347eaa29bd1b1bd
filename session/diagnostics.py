"""Process-wide, append-only diagnostics log.

The log is a capped ring buffer of timestamped entries shown in the debug console.
It is a pure consumer: the controller, the selection coordinator and the event
server push entries into it; nothing reads it to make decisions.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
import threading
from typing import Callable, Deque, List, Literal, Optional
import uuid

from session.events import EventHub, Subscription

LogLevel = Literal["debug", "info", "warn", "error"]
LogSource = Literal["frontend", "backend"]

_LEVELS = ("debug", "info", "warn", "error")
_SOURCES = ("frontend", "backend")

DEFAULT_CAPACITY = 1000
ENTRY_ADDED = "entry-added"
CLEARED = "cleared"


@dataclass(frozen=True)
class LogEntry:
    """
    One diagnostics event.

    Attributes:
        id: random UUID string, unique per entry.
        timestamp: local wall-clock time formatted as HH:MM:SS.
        level: "debug" | "info" | "warn" | "error".
        message: human-readable text.
        source: "frontend" for events raised in this process, "backend" for events
            forwarded by the automation backend.
        category: error taxonomy name (e.g. "BackendCommandFailure") when the entry
            reports a session/selection failure, otherwise None.
    """
    id: str
    timestamp: str
    level: LogLevel
    message: str
    source: LogSource
    category: Optional[str] = None


def normalize_level(level: object) -> LogLevel:
    """Map free-form level strings ("warning", "ERROR", ...) onto the four known levels."""
    s = str(level).strip().lower()
    if s == "warning":
        s = "warn"
    if s in ("critical", "fatal"):
        s = "error"
    return s if s in _LEVELS else "info"  # type: ignore[return-value]


class DiagnosticsLog:
    """
    Thread-safe ring buffer of LogEntry objects.

    Behavior:
    - At most `capacity` entries are kept; appending beyond that evicts the oldest.
    - `entries()` returns oldest -> newest; `newest_first()` is what the console shows.
    - Listeners are notified through an EventHub (`entry-added`, `cleared`) so the
      console can subscribe and release its subscription when it closes.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, *, clock: Callable[[], datetime] = datetime.now) -> None:
        if not (1 <= int(capacity) <= DEFAULT_CAPACITY):
            raise ValueError(f"capacity must be in 1..{DEFAULT_CAPACITY}")
        self._capacity = int(capacity)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Deque[LogEntry] = deque(maxlen=self._capacity)
        self._hub = EventHub()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(
        self,
        level: str,
        message: str,
        *,
        source: str = "frontend",
        category: Optional[str] = None,
    ) -> LogEntry:
        src = str(source) if str(source) in _SOURCES else "frontend"
        entry = LogEntry(
            id=str(uuid.uuid4()),
            timestamp=self._clock().strftime("%H:%M:%S"),
            level=normalize_level(level),
            message=str(message),
            source=src,  # type: ignore[arg-type]
            category=category,
        )
        with self._lock:
            self._entries.append(entry)
        self._hub.publish(ENTRY_ADDED, entry)
        return entry

    def debug(self, message: str, **kw) -> LogEntry:
        return self.add("debug", message, **kw)

    def info(self, message: str, **kw) -> LogEntry:
        return self.add("info", message, **kw)

    def warn(self, message: str, **kw) -> LogEntry:
        return self.add("warn", message, **kw)

    def error(self, message: str, **kw) -> LogEntry:
        return self.add("error", message, **kw)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self._hub.publish(CLEARED, None)

    def entries(self) -> List[LogEntry]:
        with self._lock:
            return list(self._entries)

    def newest_first(self) -> List[LogEntry]:
        with self._lock:
            return list(reversed(self._entries))

    def by_category(self, category: str) -> List[LogEntry]:
        with self._lock:
            return [e for e in self._entries if e.category == category]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def on_entry(self, handler: Callable[[LogEntry], None]) -> Subscription:
        return self._hub.subscribe(ENTRY_ADDED, handler)

    def on_cleared(self, handler: Callable[[object], None]) -> Subscription:
        return self._hub.subscribe(CLEARED, handler)
