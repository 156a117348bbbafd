"""Tests for event bus."""

from poseforge.core.events import EventBus, EventType


def test_subscribe_publish():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.COORDINATES_APPLIED, lambda **kw: received.append(kw))
    bus.publish(EventType.COORDINATES_APPLIED, joint_id="elbow_right", values=(0.5, 0.0, 0.0))
    assert received == [{"joint_id": "elbow_right", "values": (0.5, 0.0, 0.0)}]


def test_unsubscribe():
    bus = EventBus()
    received = []
    handler = lambda **kw: received.append(kw)
    bus.subscribe(EventType.JOINTS_UPDATED, handler)
    bus.unsubscribe(EventType.JOINTS_UPDATED, handler)
    bus.publish(EventType.JOINTS_UPDATED, result=None, state=None)
    assert len(received) == 0


def test_multiple_subscribers():
    bus = EventBus()
    a, b = [], []
    bus.subscribe(EventType.BIOMECH_RESET, lambda **kw: a.append(1))
    bus.subscribe(EventType.BIOMECH_RESET, lambda **kw: b.append(1))
    bus.publish(EventType.BIOMECH_RESET)
    assert len(a) == 1
    assert len(b) == 1


def test_different_events_independent():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.ROM_VIOLATION, lambda **kw: received.append("rom"))
    bus.publish(EventType.RIG_INITIALIZED, result=None)
    assert len(received) == 0


def test_handler_may_unsubscribe_during_publish():
    bus = EventBus()
    calls = []

    def once(**kw):
        calls.append(1)
        bus.unsubscribe(EventType.BIOMECH_RESET, once)

    bus.subscribe(EventType.BIOMECH_RESET, once)
    bus.publish(EventType.BIOMECH_RESET)
    bus.publish(EventType.BIOMECH_RESET)
    assert calls == [1]


def test_clear():
    bus = EventBus()
    bus.subscribe(EventType.BIOMECH_RESET, lambda **kw: None)
    bus.clear()
    # Should not raise
    bus.publish(EventType.BIOMECH_RESET)
