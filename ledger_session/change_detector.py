from typing import List, Optional, TYPE_CHECKING

from .balance_oracle import BalanceOracle
from .event_bus import EventBus
from .events import BalanceChanged, PaymentReceived, SessionEvent
from .globals import get_session_logger
from .session_logger import SessionLogger

if TYPE_CHECKING:
    from .session import Session


class ChangeDetector:
    """Turns balance snapshots into events by comparing them with the last known balance of the session"""

    def __init__(self, oracle: BalanceOracle, events: EventBus, logger: Optional[SessionLogger] = None):
        self._oracle = oracle
        self._events = events
        self._logger = logger or get_session_logger()

    def check(self, session: 'Session') -> List[SessionEvent]:
        """Run one detection tick and return the emitted events.
        Raises OracleReadError if the balance could not be read, the session is left untouched then."""
        old_balance = session.last_known_balance
        new_balance = self._oracle.read()
        if new_balance == old_balance:
            return []

        emitted = []  # type: List[SessionEvent]
        if new_balance > old_balance:
            # decreases are not classified, they can also be caused by fees or channel operations
            emitted.append(PaymentReceived(amount=new_balance - old_balance, description=""))
        emitted.append(BalanceChanged(old_balance=old_balance, new_balance=new_balance))
        self._logger.debug(f"ChangeDetector: balance changed {old_balance} -> {new_balance} sat")

        session._commit_balance(new_balance)
        for event in emitted:
            self._events.emit(event)
        return emitted
