"""
POSTUREFIT Exercise Service - Feedback Emitter

Turns session events into spoken cues. The detection core never talks to
the voice service directly; the emitter listens on the session's event
bus and drives a VoiceService.

Cue policy:
- identical cues inside the de-duplication window are dropped
- every new cue cancels the one in flight (latest wins, no queue)
- set/session completion cues are delayed so the last rep count is heard
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from core.config import settings
from core.timers import TimerGroup
from .events import EventBus, EventType, SessionEvent

logger = logging.getLogger(__name__)


NUMBER_WORDS = [
    "", "one", "two", "three", "four", "five",
    "six", "seven", "eight", "nine", "ten",
    "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen", "twenty",
]

SEQUENCED_CUE_TIMER = "sequenced_cue"


def count_phrase(count: int) -> str:
    """Spoken form of a rep count: words up to twenty, then digits."""
    if 0 < count < len(NUMBER_WORDS):
        return NUMBER_WORDS[count]
    return f"{count} reps"


# ═══════════════════════════════════════════════════════════════════════════════
# VOICE SERVICES
# ═══════════════════════════════════════════════════════════════════════════════

class VoiceService(ABC):
    """Speech output consumed by the feedback emitter."""

    @abstractmethod
    def speak(self, text: str):
        """Start speaking ``text``."""

    @abstractmethod
    def cancel(self):
        """Stop whatever is being spoken."""


class LoggingVoice(VoiceService):
    """Voice service that only logs cues."""

    def speak(self, text: str):
        logger.info(f"🔊 {text}")

    def cancel(self):
        logger.debug("🔇 cancel")


class CallbackVoice(VoiceService):
    """Forwards speak/cancel commands to a client (e.g. over WebSocket)."""

    def __init__(self, send: Callable[[str, Optional[str]], None]):
        self._send = send

    def speak(self, text: str):
        self._send("speak", text)

    def cancel(self):
        self._send("cancel", None)


# ═══════════════════════════════════════════════════════════════════════════════
# FEEDBACK EMITTER
# ═══════════════════════════════════════════════════════════════════════════════

class FeedbackEmitter:
    """Maps session events to de-duplicated, latest-wins voice cues."""

    def __init__(
        self,
        voice: VoiceService,
        timers: TimerGroup,
        clock: Callable[[], float],
        dedup_seconds: float = settings.FEEDBACK_DEDUP_SECONDS,
        sequenced_cue_delay: float = settings.SET_COMPLETE_CUE_DELAY_SECONDS,
        muted: bool = not settings.VOICE_ENABLED
    ):
        self.voice = voice
        self.timers = timers
        self.clock = clock
        self.dedup_seconds = dedup_seconds
        self.sequenced_cue_delay = sequenced_cue_delay
        self.muted = muted

        self._last_text: Optional[str] = None
        self._last_time: float = 0.0

    def attach(self, bus: EventBus):
        bus.subscribe(self.handle)

    def set_voice(self, voice: VoiceService):
        """Route cues to a different voice service (e.g. a newly connected client)."""
        self.voice.cancel()
        self.voice = voice

    def set_muted(self, muted: bool):
        self.muted = muted
        if muted:
            self.flush()

    def cue_for(self, event: SessionEvent) -> Optional[str]:
        """Cue text for an event, or None when the event is silent."""
        payload = event.payload

        if event.type == EventType.CALIBRATION_STARTED:
            return "Get into the starting position"
        if event.type == EventType.CALIBRATION_COUNTDOWN:
            return str(payload.get("count"))
        if event.type == EventType.DETECTION_STARTED:
            return "Starting exercise"
        if event.type == EventType.REP_COUNTED:
            side = payload.get("side")
            if side:
                return f"{side.title()} {count_phrase(payload.get('side_count', 0))}"
            return count_phrase(payload.get("current_rep", 0))
        if event.type == EventType.SET_COMPLETE and not payload.get("final"):
            return f"Set {payload.get('set')} complete! Rest {payload.get('rest_seconds')} seconds"
        if event.type == EventType.SESSION_COMPLETE:
            return "Exercise complete. Well done!"
        if event.type == EventType.SESSION_PAUSED:
            return "Paused"
        if event.type == EventType.SESSION_RESUMED:
            return "Resuming exercise"
        if event.type == EventType.VISIBILITY_HINT:
            return payload.get("hint")
        return None

    def handle(self, event: SessionEvent):
        text = self.cue_for(event)
        if not text:
            return

        if event.type in (EventType.SET_COMPLETE, EventType.SESSION_COMPLETE):
            self.timers.schedule(SEQUENCED_CUE_TIMER, self.sequenced_cue_delay, lambda: self.say(text))
        else:
            self.say(text)

    def say(self, text: str) -> bool:
        """Speak ``text`` unless muted or a duplicate. Returns True if spoken."""
        if self.muted:
            return False

        now = self.clock()
        if text == self._last_text and now - self._last_time < self.dedup_seconds:
            logger.debug(f"Duplicate cue dropped: {text}")
            return False

        self.voice.cancel()
        self.voice.speak(text)
        self._last_text = text
        self._last_time = now
        return True

    def flush(self):
        """Drop pending sequenced cues and silence the voice channel."""
        self.timers.cancel(SEQUENCED_CUE_TIMER)
        self.voice.cancel()
        self._last_text = None
