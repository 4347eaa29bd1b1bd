"""Persisted user preferences with versioned schema migration.

Schema (current version 2):

{
  "version": 2,
  "themeId": "dark",
  "methodSpeeds": {"matrix": 1, "dithering": 2, ...},
  "windowPrefs": {
    "alwaysOnTop": false,
    "miniModeScale": 1.0,
    "lastPosition": {"x": 100, "y": 80},      (optional)
    "lastSize": {"width": 1100, "height": 760} (optional)
  }
}

Files without a "version" key predate versioning and are treated as version 1.
Upgrades run through `MIGRATIONS`, one pure and idempotent step per source
version, applied in sequence from the stored version up to `CURRENT_VERSION`.

The store is loaded once at startup and flushed to disk on every mutation.
"""

from __future__ import annotations

import copy
import json
import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from session.events import EventHub, Subscription
from session.models import SPEED_MAX, SPEED_MIN, default_method_speeds

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2
CHANGED = "changed"

# Version 1 stored speeds as 100..5000 ms; version 2 uses 0..50 ms.
_OLD_SPEED_MIN = 100
_OLD_SPEED_MAX = 5000


def migrate_speed(old_speed: float) -> int:
    """
    Rescale one speed from the version-1 range into the version-2 range.

    - Values already within [0, 50] are returned unchanged (idempotent).
    - Otherwise: (old - 100) / (5000 - 100), clamped to [0, 1], times 50, rounded
      half-up. 100 -> 0, 5000 -> 50.
    """
    if SPEED_MIN <= old_speed <= SPEED_MAX:
        return int(old_speed)
    normalized = (float(old_speed) - _OLD_SPEED_MIN) / float(_OLD_SPEED_MAX - _OLD_SPEED_MIN)
    normalized = max(0.0, min(1.0, normalized))
    return int(math.floor(normalized * SPEED_MAX + 0.5))


def _migrate_v1_to_v2(raw: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(raw)
    speeds = raw.get("methodSpeeds")
    if isinstance(speeds, dict):
        out["methodSpeeds"] = {
            str(k): migrate_speed(v) if _is_number(v) else v
            for k, v in speeds.items()
        }
    return out


# Keyed by the version a step upgrades *from*.
MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _migrate_v1_to_v2,
}


def migrate(raw: Dict[str, Any], from_version: int) -> Dict[str, Any]:
    """
    Apply every migration step from `from_version` up to CURRENT_VERSION.

    Raises:
        ValueError: a step in the chain is missing from MIGRATIONS.
    """
    data = dict(raw)
    version = int(from_version)
    while version < CURRENT_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise ValueError(f"No preference migration from version {version}")
        data = step(data)
        version += 1
    data["version"] = max(int(from_version), CURRENT_VERSION)
    return data


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def default_preferences() -> Dict[str, Any]:
    return {
        "version": CURRENT_VERSION,
        "themeId": "dark",
        "methodSpeeds": default_method_speeds(),
        "windowPrefs": {
            "alwaysOnTop": False,
            "miniModeScale": 1.0,
        },
    }


def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a migrated document over the defaults and drop values of the wrong type.

    Preferences are user data rather than configuration, so invalid entries are
    discarded (and logged) instead of failing startup.
    """
    out = default_preferences()

    theme = raw.get("themeId")
    if isinstance(theme, str) and theme.strip():
        out["themeId"] = theme.strip()

    speeds = raw.get("methodSpeeds")
    if isinstance(speeds, dict):
        for k, v in speeds.items():
            if _is_number(v):
                out["methodSpeeds"][str(k)] = max(SPEED_MIN, min(SPEED_MAX, int(v)))
            else:
                logger.warning("Dropping invalid speed for method %r: %r", k, v)

    win = raw.get("windowPrefs")
    if isinstance(win, dict):
        prefs = out["windowPrefs"]
        if isinstance(win.get("alwaysOnTop"), bool):
            prefs["alwaysOnTop"] = win["alwaysOnTop"]
        if _is_number(win.get("miniModeScale")) and float(win["miniModeScale"]) > 0:
            prefs["miniModeScale"] = float(win["miniModeScale"])
        pos = win.get("lastPosition")
        if isinstance(pos, dict) and _is_number(pos.get("x")) and _is_number(pos.get("y")):
            prefs["lastPosition"] = {"x": int(pos["x"]), "y": int(pos["y"])}
        size = win.get("lastSize")
        if (
            isinstance(size, dict)
            and _is_number(size.get("width"))
            and _is_number(size.get("height"))
            and int(size["width"]) > 0
            and int(size["height"]) > 0
        ):
            prefs["lastSize"] = {"width": int(size["width"]), "height": int(size["height"])}

    out["version"] = CURRENT_VERSION
    return out


class PreferenceStore:
    """
    Owner of all persisted preference maps.

    Responsibilities:
    - Load + migrate + normalize once (`PreferenceStore.load`).
    - Expose typed getters that return copies, so callers cannot mutate state
      behind the store's back.
    - Persist after every setter (`flush`).
    - Notify subscribers with the changed top-level key via `on_change`.
    """

    def __init__(self, path: Optional[str | Path], data: Optional[Dict[str, Any]] = None) -> None:
        self._path = Path(path) if path is not None else None
        self._data: Dict[str, Any] = _normalize(data) if data is not None else default_preferences()
        self._hub = EventHub()

    @classmethod
    def load(cls, path: str | Path) -> "PreferenceStore":
        """
        Read preferences from `path`, migrating older schema versions.

        - Missing file: defaults (written on first mutation).
        - Unreadable / invalid JSON: defaults, with a warning; the bad file is left
          in place until the next mutation overwrites it.
        - Newer version than this build knows: loaded as-is (best effort).
        """
        p = Path(path)
        if not p.exists():
            return cls(p)

        try:
            with p.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences %s: %s", p, e)
            return cls(p)

        if not isinstance(raw, dict):
            logger.warning("Ignoring preferences %s: top-level value is not an object", p)
            return cls(p)

        version_raw = raw.get("version", 1)
        version = int(version_raw) if _is_number(version_raw) else 1
        if version > CURRENT_VERSION:
            logger.warning("Preferences version %s is newer than supported %s", version, CURRENT_VERSION)
        else:
            raw = migrate(raw, version)
            if version < CURRENT_VERSION:
                logger.info("Migrated preferences from version %s to %s", version, CURRENT_VERSION)

        store = cls(p, raw)
        if version < CURRENT_VERSION:
            store.flush()
        return store

    @property
    def path(self) -> Optional[Path]:
        return self._path

    # ----------------------------
    # Getters
    # ----------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    @property
    def theme_id(self) -> str:
        return str(self._data["themeId"])

    @property
    def method_speeds(self) -> Dict[str, int]:
        return dict(self._data["methodSpeeds"])

    def method_speed(self, method: str) -> Optional[int]:
        v = self._data["methodSpeeds"].get(str(method))
        return None if v is None else int(v)

    @property
    def window_prefs(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data["windowPrefs"])

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    # ----------------------------
    # Setters (each one flushes)
    # ----------------------------

    def set(self, key: str, value: Any) -> None:
        if key == "version":
            raise ValueError("version is managed by the store")
        self._data[key] = copy.deepcopy(value)
        self._changed(key)

    def set_theme(self, theme_id: str) -> None:
        if not isinstance(theme_id, str) or not theme_id.strip():
            raise ValueError("theme_id must be a non-empty string")
        self._data["themeId"] = theme_id.strip()
        self._changed("themeId")

    def set_method_speed(self, method: str, speed: int) -> int:
        """Store a clamped speed for `method` and return the stored value."""
        if not _is_number(speed):
            raise ValueError("speed must be a number")
        v = max(SPEED_MIN, min(SPEED_MAX, int(speed)))
        self._data["methodSpeeds"][str(method)] = v
        self._changed("methodSpeeds")
        return v

    def set_window_pref(self, key: str, value: Any) -> None:
        self._data["windowPrefs"][str(key)] = copy.deepcopy(value)
        self._changed("windowPrefs")

    def set_window_position(self, x: int, y: int) -> None:
        self.set_window_pref("lastPosition", {"x": int(x), "y": int(y)})

    def set_window_size(self, width: int, height: int) -> None:
        if int(width) <= 0 or int(height) <= 0:
            raise ValueError("window size must be positive")
        self.set_window_pref("lastSize", {"width": int(width), "height": int(height)})

    def on_change(self, handler: Callable[[str], None]) -> Subscription:
        return self._hub.subscribe(CHANGED, handler)

    def flush(self) -> None:
        """Write the current document to disk (no-op for in-memory stores)."""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    def _changed(self, key: str) -> None:
        try:
            self.flush()
        except OSError:
            # Keep the in-memory value; the next mutation retries the write.
            logger.exception("Failed to persist preferences to %s", self._path)
        self._hub.publish(CHANGED, key)
