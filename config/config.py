"""Configuration schema and JSON validation helpers.

`load_config` reads `config/config.json` once at startup and returns a frozen
`AppConfig`; backend address, event receiver, window sizes, log files and the
overlay threshold all come from here.

User-editable state (speeds, window size, theme) does not live here; see
`config/preferences.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Dict


@dataclass(frozen=True)
class AppConfig:
    """
    Validated runtime settings of the control surface.

    Everything here is fixed for the life of the process; anything the user edits
    at runtime belongs in the preference store.

    JSON layout:

    {
      "backend": { "base_url": "http://127.0.0.1:8740", "timeout_sec": 5.0 },
      "events": { "host": "127.0.0.1", "port": 8741 },
      "window": { "normal_width": 1100, "normal_height": 760, "mini_width": 300, "mini_height": 420 },
      "selection": { "min_drag_px": 10 },
      "diagnostics": { "capacity": 1000 },
      "preferences": { "path": "./config/preferences.json" },
      "logging": { "dir": "./logs", "level": "INFO", "max_bytes": 1048576, "retention": 3 },
      "alert": { "flash_ms": 1200 }
    }

    Only "backend" and "events" are required; the other sections fall back to the
    defaults shown above.
    """

    # -----------------------------
    # Backend command API
    # -----------------------------
    backend_base_url: str
    backend_timeout_sec: float

    # -----------------------------
    # Local event receiver
    # -----------------------------
    events_host: str
    events_port: int

    # -----------------------------
    # Window sizes (logical px)
    # -----------------------------
    normal_width: int
    normal_height: int
    mini_width: int
    mini_height: int

    # -----------------------------
    # Selection / diagnostics / alert
    # -----------------------------
    min_drag_px: int
    diagnostics_capacity: int
    alert_flash_ms: int

    # -----------------------------
    # Files
    # -----------------------------
    preferences_path: str
    log_dir: str
    log_level: str
    log_max_bytes: int
    log_retention: int


def _require_obj(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """
    Required top-level section: `raw[key]` must be a JSON object.
    """
    v = raw.get(key)
    if not isinstance(v, dict):
        raise ValueError(f"Missing or invalid '{key}' object in config")
    return v


def _opt_obj(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Optional section: missing/None => {}, anything but an object => error."""
    v = raw.get(key)
    if v is None:
        return {}
    if isinstance(v, dict):
        return v
    raise ValueError(f"Missing or invalid '{key}' object in config (expected object)")


def _require_num(v: Any, key: str) -> float:
    """
    Require a JSON number (int/float) and normalize to float.

    Booleans are rejected even though bool is an int subclass in Python.
    """
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"Missing or invalid '{key}' (expected number)")
    return float(v)


def _require_str(v: Any, key: str) -> str:
    """Require a non-empty string."""
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"Missing or invalid '{key}' (expected non-empty string)")
    return v


def _opt_int(v: Any, key: str, default: int) -> int:
    """
    Optional integer with default.

    Accepts int or float (JSON number) and converts to int; fractional floats are
    truncated by int().
    """
    if v is None:
        return default
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return int(v)
    raise ValueError(f"Missing or invalid '{key}' (expected number)")


def _opt_str(v: Any, key: str, default: str) -> str:
    if v is None:
        return default
    if isinstance(v, str) and v.strip():
        return v
    raise ValueError(f"Missing or invalid '{key}' (expected non-empty string)")


MAX_DIAGNOSTICS_CAPACITY = 1000
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config(path: str) -> AppConfig:
    """
    Parse `path` into an `AppConfig`.

    Rules:
    - Strict about required sections/keys: "backend", "events".
    - Tolerant about optional sections: defaults if missing.
    - Normalizes:
        - backend.base_url loses its trailing slash
        - logging.level is stripped + uppercased

    Raises:
        ValueError: missing keys, invalid types, or failed constraints.
        OSError: file cannot be opened/read.
        json.JSONDecodeError: invalid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw: Dict[str, Any] = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON object")

    backend = _require_obj(raw, "backend")
    events = _require_obj(raw, "events")
    window = _opt_obj(raw, "window")
    selection = _opt_obj(raw, "selection")
    diagnostics = _opt_obj(raw, "diagnostics")
    preferences = _opt_obj(raw, "preferences")
    logging_obj = _opt_obj(raw, "logging")
    alert = _opt_obj(raw, "alert")

    # ---- Backend ----
    backend_base_url = _require_str(backend.get("base_url"), "backend.base_url").strip().rstrip("/")
    if not backend_base_url.startswith(("http://", "https://")):
        raise ValueError("backend.base_url must start with http:// or https://")
    backend_timeout_sec = _require_num(backend.get("timeout_sec", 5.0), "backend.timeout_sec")
    if backend_timeout_sec <= 0:
        raise ValueError("backend.timeout_sec must be > 0")

    # ---- Events ----
    events_host = _require_str(events.get("host"), "events.host").strip()
    events_port = int(_require_num(events.get("port"), "events.port"))
    if not (0 < events_port < 65536):
        raise ValueError("events.port must be in 1..65535")

    # ---- Window ----
    normal_width = _opt_int(window.get("normal_width"), "window.normal_width", 1100)
    normal_height = _opt_int(window.get("normal_height"), "window.normal_height", 760)
    mini_width = _opt_int(window.get("mini_width"), "window.mini_width", 300)
    mini_height = _opt_int(window.get("mini_height"), "window.mini_height", 420)
    if min(normal_width, normal_height, mini_width, mini_height) <= 0:
        raise ValueError("window sizes must be > 0")

    # ---- Selection / diagnostics / alert ----
    min_drag_px = _opt_int(selection.get("min_drag_px"), "selection.min_drag_px", 10)
    if min_drag_px < 0:
        raise ValueError("selection.min_drag_px must be >= 0")
    diagnostics_capacity = _opt_int(diagnostics.get("capacity"), "diagnostics.capacity", 1000)
    if not (1 <= diagnostics_capacity <= MAX_DIAGNOSTICS_CAPACITY):
        raise ValueError(f"diagnostics.capacity must be in 1..{MAX_DIAGNOSTICS_CAPACITY}")
    alert_flash_ms = _opt_int(alert.get("flash_ms"), "alert.flash_ms", 1200)
    if alert_flash_ms < 0:
        raise ValueError("alert.flash_ms must be >= 0")

    # ---- Files ----
    preferences_path = _opt_str(preferences.get("path"), "preferences.path", "./config/preferences.json")
    log_dir = _opt_str(logging_obj.get("dir"), "logging.dir", "./logs")
    log_level = _opt_str(logging_obj.get("level"), "logging.level", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of: {', '.join(_LOG_LEVELS)}")
    log_max_bytes = _opt_int(logging_obj.get("max_bytes"), "logging.max_bytes", 1_048_576)
    log_retention = _opt_int(logging_obj.get("retention"), "logging.retention", 3)
    if log_max_bytes <= 0:
        raise ValueError("logging.max_bytes must be > 0")
    if log_retention < 1:
        raise ValueError("logging.retention must be >= 1")

    return AppConfig(
        backend_base_url=backend_base_url,
        backend_timeout_sec=backend_timeout_sec,
        events_host=events_host,
        events_port=events_port,
        normal_width=normal_width,
        normal_height=normal_height,
        mini_width=mini_width,
        mini_height=mini_height,
        min_drag_px=min_drag_px,
        diagnostics_capacity=diagnostics_capacity,
        alert_flash_ms=alert_flash_ms,
        preferences_path=preferences_path,
        log_dir=log_dir,
        log_level=log_level,
        log_max_bytes=log_max_bytes,
        log_retention=log_retention,
    )
