from __future__ import annotations

import json

import pytest

from config import preferences as prefs_mod
from config.preferences import (
    CURRENT_VERSION,
    PreferenceStore,
    migrate,
    migrate_speed,
)


@pytest.mark.parametrize(
    "old, expected",
    [(100, 0), (5000, 50), (2550, 25), (60, 0), (10000, 50)],
)
def test_migrate_speed_rescales_old_range(old, expected):
    assert migrate_speed(old) == expected


@pytest.mark.parametrize("value", [0, 1, 10, 25, 50])
def test_migrate_speed_is_idempotent_within_new_range(value):
    assert migrate_speed(value) == value
    assert migrate_speed(migrate_speed(value)) == value


def test_migrate_applies_table_in_sequence(monkeypatch):
    seen: list = []

    def step(n):
        def _run(raw):
            seen.append(n)
            return dict(raw, touched=n)
        return _run

    monkeypatch.setattr(prefs_mod, "CURRENT_VERSION", 4)
    monkeypatch.setattr(prefs_mod, "MIGRATIONS", {1: step(1), 2: step(2), 3: step(3)})

    out = prefs_mod.migrate({"version": 2}, 2)

    assert seen == [2, 3]
    assert out["touched"] == 3
    assert out["version"] == 4


def test_migrate_reports_missing_step(monkeypatch):
    monkeypatch.setattr(prefs_mod, "CURRENT_VERSION", 3)
    monkeypatch.setattr(prefs_mod, "MIGRATIONS", {1: lambda r: r})
    with pytest.raises(ValueError):
        prefs_mod.migrate({}, 1)


def test_v1_file_is_migrated_and_rewritten(tmp_path):
    path = tmp_path / "preferences.json"
    path.write_text(json.dumps({"themeId": "light", "methodSpeeds": {"matrix": 100, "spiral": 5000}}))

    store = PreferenceStore.load(path)

    assert store.method_speed("matrix") == 0
    assert store.method_speed("spiral") == 50
    assert store.theme_id == "light"
    on_disk = json.loads(path.read_text())
    assert on_disk["version"] == CURRENT_VERSION
    assert on_disk["methodSpeeds"]["spiral"] == 50


def test_current_version_is_loaded_unchanged(tmp_path):
    path = tmp_path / "preferences.json"
    doc = {"version": 2, "themeId": "dark", "methodSpeeds": {"matrix": 7}, "windowPrefs": {"alwaysOnTop": True}}
    path.write_text(json.dumps(doc))

    store = PreferenceStore.load(path)

    assert store.method_speed("matrix") == 7
    assert store.window_prefs["alwaysOnTop"] is True
    # Defaults fill methods the file did not mention.
    assert store.method_speed("stippling") == 10


def test_missing_or_corrupt_file_uses_defaults(tmp_path):
    missing = PreferenceStore.load(tmp_path / "nope.json")
    assert missing.method_speeds["matrix"] == 1

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    store = PreferenceStore.load(bad)
    assert store.theme_id == "dark"
    assert store.method_speed("dithering") == 2


def test_setters_flush_and_notify(tmp_path):
    path = tmp_path / "sub" / "preferences.json"
    store = PreferenceStore(path)
    changed: list = []
    store.on_change(changed.append)

    assert store.set_method_speed("matrix", 99) == 50
    store.set_window_size(800, 600)
    store.set_window_position(-10, 40)

    on_disk = json.loads(path.read_text())
    assert on_disk["methodSpeeds"]["matrix"] == 50
    assert on_disk["windowPrefs"]["lastSize"] == {"width": 800, "height": 600}
    assert on_disk["windowPrefs"]["lastPosition"] == {"x": -10, "y": 40}
    assert changed == ["methodSpeeds", "windowPrefs", "windowPrefs"]


def test_version_key_is_not_writable():
    store = PreferenceStore(None)
    with pytest.raises(ValueError):
        store.set("version", 1)


def test_getters_return_copies():
    store = PreferenceStore(None)
    store.method_speeds["matrix"] = 42
    store.window_prefs["alwaysOnTop"] = True
    assert store.method_speed("matrix") == 1
    assert store.window_prefs["alwaysOnTop"] is False


def test_migrate_keeps_newer_version_number():
    assert migrate({"version": 5}, 5)["version"] == 5
