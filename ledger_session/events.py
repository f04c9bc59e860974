import enum
from typing import Any, Dict

import attr

from .ledger_client import PaymentResult


class EventKind(enum.Enum):
    CONNECTED = "connected"
    CONNECTION_FAILED = "connection_failed"
    INVOICE_CREATED = "invoice_created"
    PAYMENT_SENT = "payment_sent"
    PAYMENT_RECEIVED = "payment_received"
    BALANCE_CHANGED = "balance_changed"
    READY = "ready"


def _positive(instance, attribute, value) -> None:
    if value <= 0:
        raise ValueError(f"{attribute.name} must be > 0, got {value}")


@attr.s(frozen=True, slots=True)
class SessionEvent:
    kind = None  # type: EventKind

    def to_json(self) -> Dict[str, Any]:
        """Payload of the event as it is published to consumers (e.g. as CLN notification)"""
        return attr.asdict(self, recurse=False)


@attr.s(frozen=True, slots=True)
class Connected(SessionEvent):
    kind = EventKind.CONNECTED


@attr.s(frozen=True, slots=True)
class ConnectionFailed(SessionEvent):
    kind = EventKind.CONNECTION_FAILED
    error = attr.ib(type=str)


@attr.s(frozen=True, slots=True)
class InvoiceCreated(SessionEvent):
    kind = EventKind.INVOICE_CREATED
    invoice = attr.ib(type=str)
    amount = attr.ib(type=int)


@attr.s(frozen=True, slots=True)
class PaymentSent(SessionEvent):
    kind = EventKind.PAYMENT_SENT
    invoice = attr.ib(type=str)
    result = attr.ib(type=PaymentResult)

    def to_json(self) -> Dict[str, Any]:
        return {"invoice": self.invoice, "result": self.result.to_json()}


@attr.s(frozen=True, slots=True)
class PaymentReceived(SessionEvent):
    """Positive balance delta observed by the change detector.
    The description is always empty, a balance delta carries no payment metadata."""
    kind = EventKind.PAYMENT_RECEIVED
    amount = attr.ib(type=int, validator=_positive)
    description = attr.ib(type=str, default="")


@attr.s(frozen=True, slots=True)
class BalanceChanged(SessionEvent):
    kind = EventKind.BALANCE_CHANGED
    old_balance = attr.ib(type=int)
    new_balance = attr.ib(type=int)

    @property
    def delta(self) -> int:
        return self.new_balance - self.old_balance

    def to_json(self) -> Dict[str, Any]:
        return {"old": self.old_balance, "new": self.new_balance}


@attr.s(frozen=True, slots=True)
class Ready(SessionEvent):
    kind = EventKind.READY
