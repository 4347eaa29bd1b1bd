from __future__ import annotations

from session.events import EventHub
from session.state_machine import decide_emergency


def test_publish_reaches_only_open_subscribers():
    hub = EventHub()
    got: list = []
    a = hub.subscribe("ping", lambda p: got.append(("a", p)))
    hub.subscribe("ping", lambda p: got.append(("b", p)))

    assert hub.publish("ping", 1) == 2
    a.close()
    a.close()
    assert hub.publish("ping", 2) == 1

    assert got == [("a", 1), ("b", 1), ("b", 2)]
    assert hub.subscriber_count("ping") == 1


def test_failing_handler_does_not_block_others(caplog):
    hub = EventHub()
    got: list = []

    def broken(_p):
        raise RuntimeError("nope")

    hub.subscribe("x", broken)
    hub.subscribe("x", got.append)

    assert hub.publish("x", "payload") == 1
    assert got == ["payload"]
    assert "Handler for 'x' failed" in caplog.text


def test_subscription_closed_during_publish_does_not_fire():
    hub = EventHub()
    got: list = []
    holder: dict = {}

    def first(_p):
        holder["second"].close()

    hub.subscribe("x", first)
    holder["second"] = hub.subscribe("x", got.append)

    hub.publish("x", 1)
    assert got == []


def test_subscription_as_context_manager():
    hub = EventHub()
    with hub.subscribe("x", lambda p: None) as sub:
        assert not sub.closed
    assert sub.closed
    assert hub.subscriber_count("x") == 0


def test_emergency_decisions():
    d = decide_emergency(state="DRAWING", start_in_flight=False)
    assert (d.next_state, d.collapsed, d.interrupted) == ("EMERGENCY_STOPPED", False, True)

    d = decide_emergency(state="IDLE", start_in_flight=True)
    assert d.interrupted and not d.collapsed

    d = decide_emergency(state="EMERGENCY_STOPPED", start_in_flight=False)
    assert d.collapsed
