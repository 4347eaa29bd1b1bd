from __future__ import annotations

from datetime import datetime

import pytest

from session.diagnostics import DiagnosticsLog, normalize_level


def test_buffer_never_exceeds_capacity_and_evicts_oldest():
    log = DiagnosticsLog()
    for i in range(1000):
        log.info(f"entry {i}")
    assert len(log) == 1000
    assert log.entries()[0].message == "entry 0"

    log.info("entry 1000")

    assert len(log) == 1000
    assert log.entries()[0].message == "entry 1"
    assert log.newest_first()[0].message == "entry 1000"


def test_entries_carry_timestamp_source_and_unique_ids():
    log = DiagnosticsLog(clock=lambda: datetime(2024, 1, 2, 13, 4, 5))
    a = log.warn("careful", category="InvalidGeometry")
    b = log.add("warning", "from backend", source="backend")

    assert a.timestamp == "13:04:05"
    assert a.source == "frontend"
    assert a.category == "InvalidGeometry"
    assert b.level == "warn"
    assert b.source == "backend"
    assert a.id != b.id


@pytest.mark.parametrize(
    "raw, expected",
    [("ERROR", "error"), ("critical", "error"), ("Warning", "warn"), ("debug", "debug"), ("trace", "info")],
)
def test_normalize_level(raw, expected):
    assert normalize_level(raw) == expected


def test_listeners_and_clear():
    log = DiagnosticsLog(capacity=3)
    added: list = []
    cleared: list = []
    sub = log.on_entry(added.append)
    log.on_cleared(cleared.append)

    log.error("boom")
    sub.close()
    log.info("quiet")
    log.clear()

    assert [e.message for e in added] == ["boom"]
    assert cleared == [None]
    assert len(log) == 0


@pytest.mark.parametrize("capacity", [0, 1001])
def test_capacity_outside_bounds_is_rejected(capacity):
    with pytest.raises(ValueError):
        DiagnosticsLog(capacity=capacity)
