"""
POSTUREFIT Exercise Service - Session Events

Events published by the session controller and the in-order event bus
that fans them out to feedback and UI listeners.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Any
from enum import Enum

from shared.utils import get_now_iso

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Outbound session event types."""
    CALIBRATION_STARTED = "calibration_started"
    CALIBRATION_COUNTDOWN = "calibration_countdown"
    CALIBRATION_COMPLETE = "calibration_complete"
    DETECTION_STARTED = "detection_started"
    PHASE_CHANGED = "phase_changed"
    REP_COUNTED = "rep_counted"
    SET_COMPLETE = "set_complete"
    REST_STARTED = "rest_started"
    REST_TICK = "rest_tick"
    SESSION_COMPLETE = "session_complete"
    SESSION_PAUSED = "session_paused"
    SESSION_RESUMED = "session_resumed"
    SESSION_CANCELLED = "session_cancelled"
    SENSOR_UNAVAILABLE = "sensor_unavailable"
    VISIBILITY_HINT = "visibility_hint"
    FRAME_DROPPED = "frame_dropped"


@dataclass(frozen=True)
class SessionEvent:
    """One event, numbered in publish order."""
    type: EventType
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0
    timestamp: str = field(default_factory=get_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "sequence": self.sequence,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe with strict ordering.

    Events published from inside a handler are queued and delivered only
    after every handler has seen the current event.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._handlers: List[EventHandler] = []
        self._queue: Deque[SessionEvent] = deque()
        self._dispatching = False
        self._sequence = 0

    def subscribe(self, handler: EventHandler):
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def clear(self):
        """Drop all handlers and undelivered events."""
        self._handlers.clear()
        self._queue.clear()

    def publish(self, event_type: EventType, payload: Dict[str, Any] = None) -> SessionEvent:
        self._sequence += 1
        event = SessionEvent(
            type=event_type,
            session_id=self.session_id,
            payload=payload or {},
            sequence=self._sequence,
        )
        self._queue.append(event)

        if not self._dispatching:
            self._drain()
        return event

    def _drain(self):
        self._dispatching = True
        try:
            while self._queue:
                event = self._queue.popleft()
                for handler in list(self._handlers):
                    try:
                        handler(event)
                    except Exception as e:
                        logger.error(f"❌ Event handler failed for {event.type.value}: {e}")
        finally:
            self._dispatching = False
