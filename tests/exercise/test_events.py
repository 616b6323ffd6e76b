"""
Event bus ordering and session timers.
"""

import asyncio

from core.timers import AsyncioScheduler, TimerGroup
from core.websocket import MessageType
from exercise_service.models import EventBus, EventType


def test_events_are_numbered_in_publish_order():
    bus = EventBus("s1")
    seen = []
    bus.subscribe(seen.append)

    bus.publish(EventType.CALIBRATION_STARTED)
    bus.publish(EventType.CALIBRATION_COUNTDOWN, {"count": 3})

    assert [e.sequence for e in seen] == [1, 2]
    assert seen[1].payload == {"count": 3}
    assert seen[0].to_dict()["type"] == "calibration_started"


def test_reentrant_publish_is_delivered_after_current_event():
    bus = EventBus("s1")
    order = []

    def first(event):
        order.append(("first", event.type))
        if event.type == EventType.SET_COMPLETE:
            bus.publish(EventType.REST_STARTED)

    def second(event):
        order.append(("second", event.type))

    bus.subscribe(first)
    bus.subscribe(second)
    bus.publish(EventType.SET_COMPLETE)

    assert order == [
        ("first", EventType.SET_COMPLETE),
        ("second", EventType.SET_COMPLETE),
        ("first", EventType.REST_STARTED),
        ("second", EventType.REST_STARTED),
    ]


def test_failing_handler_does_not_block_others():
    bus = EventBus("s1")
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    bus.publish(EventType.REP_COUNTED, {"current_rep": 1})

    assert len(seen) == 1


def test_timer_group_replaces_same_key(scheduler):
    timers = TimerGroup(scheduler)
    fired = []

    timers.schedule("rest", 1.0, lambda: fired.append("old"))
    timers.schedule("rest", 2.0, lambda: fired.append("new"))
    scheduler.advance(5.0)

    assert fired == ["new"]
    assert timers.pending == 0


def test_timer_group_cancel_all(scheduler):
    timers = TimerGroup(scheduler)
    fired = []

    timers.schedule("a", 1.0, lambda: fired.append("a"))
    timers.schedule("b", 2.0, lambda: fired.append("b"))

    assert timers.cancel_all() == 2
    scheduler.advance(5.0)
    assert fired == []


def test_asyncio_scheduler_uses_running_loop():
    async def run():
        scheduler = AsyncioScheduler()
        timers = TimerGroup(scheduler)
        done = asyncio.Event()
        start = scheduler.time()
        timers.schedule("tick", 0.01, done.set)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        return scheduler.time() - start, timers.pending

    elapsed, pending = asyncio.run(run())
    assert elapsed >= 0.0
    assert pending == 0


def test_voice_cues_are_socket_messages_not_session_events():
    assert MessageType.VOICE_CUE.value == "voice_cue"
    assert "voice_cue" not in {event_type.value for event_type in EventType}
