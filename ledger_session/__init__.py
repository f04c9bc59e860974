from .ledger_client import LedgerClient, LedgerSessionError, PaymentRecord, PaymentResult
from .events import (EventKind, SessionEvent, Connected, ConnectionFailed, InvoiceCreated, PaymentSent,
                     PaymentReceived, BalanceChanged, Ready)
from .event_bus import EventBus
from .session_config import ConnectionConfig, SessionConfig, Network
from .session_logger import SessionLogger
from .session import Session, NotInitializedError, AlreadyConnectedError, InvalidAmountError, EmptyResultError
