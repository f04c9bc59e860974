import asyncio
import traceback
from typing import Callable, Optional

from .globals import get_session_logger
from .session_logger import SessionLogger


class PollScheduler:
    """Repeating timer driving the balance checks.

    Time is supplied by the host, either through advance() from a frame/tick loop or through
    the run() coroutine on the host event loop. Ticks never run on a worker thread and never overlap."""

    def __init__(self, interval_seconds: float, callback: Callable[[], None],
                 logger: Optional[SessionLogger] = None):
        if not interval_seconds > 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._logger = logger or get_session_logger()
        self._active = False
        self._in_flight = False
        self._elapsed = 0.0
        self.ticks = 0  # completed ticks since creation

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self._elapsed = 0.0
        self._active = True
        self._logger.debug(f"PollScheduler: started, interval {self.interval_seconds}s")

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._elapsed = 0.0
        self._logger.debug("PollScheduler: stopped")

    def advance(self, elapsed_seconds: float) -> bool:
        """Feed elapsed host time, fires at most one tick per call. Returns True if a tick ran."""
        if not self._active:
            return False
        self._elapsed += elapsed_seconds
        if self._elapsed < self.interval_seconds:
            return False
        due = self._elapsed
        if not self.fire():
            return False
        # a late host gets one tick, not a burst of catch up ticks. Time added during the tick is kept.
        self._elapsed -= due - due % self.interval_seconds
        return True

    def fire(self) -> bool:
        """Run the callback now unless stopped or a tick is still in flight"""
        if not self._active or self._in_flight:
            return False
        self._in_flight = True
        try:
            self._callback()
        except Exception:
            self._logger.error(f"PollScheduler: error in poll tick:\n{traceback.format_exc()}")
        finally:
            self._in_flight = False
            self.ticks += 1
        return True

    async def run(self) -> None:
        """Cooperative polling loop for hosts driven by asyncio, runs until cancelled"""
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._active:
                self.fire()
