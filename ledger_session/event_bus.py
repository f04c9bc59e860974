import traceback
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from .events import EventKind, SessionEvent
from .globals import get_session_logger
from .session_logger import SessionLogger

Listener = Callable[[SessionEvent], None]


class EventBus:
    """Synchronous dispatch of session events to the listeners registered for their kind.
    Listeners run in registration order, a failing listener is logged and skipped."""

    def __init__(self, logger: Optional[SessionLogger] = None):
        self._logger = logger or get_session_logger()
        self._listeners = defaultdict(list)  # type: Dict[EventKind, List[Listener]]
        self._catch_all = []  # type: List[Listener]

    def subscribe(self, kind: EventKind, listener: Listener) -> None:
        self._listeners[kind].append(listener)

    def unsubscribe(self, kind: EventKind, listener: Listener) -> None:
        try:
            self._listeners[kind].remove(listener)
        except ValueError:
            self._logger.debug(f"EventBus: unsubscribe of unknown listener for {kind.value}")

    def subscribe_all(self, listener: Listener) -> None:
        """Listener receives every event, after the listeners of the specific kind"""
        self._catch_all.append(listener)

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners[kind]) + len(self._catch_all)

    def emit(self, event: SessionEvent) -> None:
        self._logger.debug(f"EventBus: emitting {event.kind.value}: {event}")
        for listener in list(self._listeners[event.kind]) + list(self._catch_all):
            try:
                listener(event)
            except Exception:
                self._logger.error(f"EventBus: listener {listener!r} failed on {event.kind.value}:\n"
                                   f"{traceback.format_exc()}")
