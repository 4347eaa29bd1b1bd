from __future__ import annotations

import json
from pathlib import Path

import pytest

from config.config import load_config

_SHIPPED = Path(__file__).resolve().parents[1] / "config" / "config.json"


def _write(tmp_path, doc) -> str:
    p = tmp_path / "config.json"
    p.write_text(json.dumps(doc), encoding="utf-8")
    return str(p)


def test_shipped_config_loads():
    cfg = load_config(str(_SHIPPED))
    assert cfg.backend_base_url.startswith("http://")
    assert cfg.diagnostics_capacity == 1000
    assert cfg.min_drag_px == 10


def test_minimal_config_gets_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, {
        "backend": {"base_url": "http://localhost:9000/"},
        "events": {"host": "127.0.0.1", "port": 9001},
    }))
    assert cfg.backend_base_url == "http://localhost:9000"
    assert cfg.backend_timeout_sec == 5.0
    assert (cfg.mini_width, cfg.mini_height) == (300, 420)
    assert cfg.log_level == "INFO"
    assert cfg.preferences_path == "./config/preferences.json"


@pytest.mark.parametrize(
    "doc",
    [
        {"events": {"host": "h", "port": 1}},
        {"backend": {"base_url": "ftp://x"}, "events": {"host": "h", "port": 1}},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": True}},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": 70000}},
        {"backend": {"base_url": "http://x", "timeout_sec": 0}, "events": {"host": "h", "port": 1}},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": 1}, "window": []},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": 1}, "logging": {"level": "loud"}},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": 1}, "diagnostics": {"capacity": 0}},
        {"backend": {"base_url": "http://x"}, "events": {"host": "h", "port": 1}, "diagnostics": {"capacity": 1001}},
    ],
)
def test_invalid_config_fails_fast(tmp_path, doc):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, doc))
