"""
POSTUREFIT Session Timers

Cooperative timers on the asyncio event loop. Session timers (calibration
steps, rest countdown, delayed voice cues) are owned by a TimerGroup so a
cancelled session can drop every pending callback in one call.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """
    Scheduler backed by the running asyncio loop.

    Any other scheduler needs the same two methods: ``call_later(delay,
    callback)`` returning a handle with ``cancel()``, and ``time()``.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)

    def time(self) -> float:
        return self.loop.time()


class TimerGroup:
    """
    Named timers for one owner.

    Scheduling a key that is already pending replaces the old timer.
    """

    def __init__(self, scheduler: Any, name: str = "timers"):
        self.scheduler = scheduler
        self.name = name
        self._handles: Dict[str, Any] = {}

    @property
    def pending(self) -> int:
        return len(self._handles)

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    def schedule(self, key: str, delay: float, callback: Callable[[], None]):
        self.cancel(key)

        def fire():
            self._handles.pop(key, None)
            callback()

        self._handles[key] = self.scheduler.call_later(delay, fire)
        logger.debug(f"[{self.name}] scheduled '{key}' in {delay:.2f}s")

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._handles)
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        if count:
            logger.debug(f"[{self.name}] cancelled {count} pending timer(s)")
        return count
