import pytest
from unittest.mock import Mock

from ledger_session.event_bus import EventBus
from ledger_session.events import (BalanceChanged, Connected, ConnectionFailed, EventKind, InvoiceCreated,
                                   PaymentReceived, PaymentSent, Ready)
from ledger_session.ledger_client import PaymentResult
from ledger_session.session_logger import SessionLogger


@pytest.fixture
def logger():
    return Mock(spec=SessionLogger)


@pytest.fixture
def bus(logger):
    return EventBus(logger=logger)


def test_registration_order(bus):
    order = []
    bus.subscribe(EventKind.READY, lambda event: order.append("first"))
    bus.subscribe(EventKind.READY, lambda event: order.append("second"))
    bus.subscribe_all(lambda event: order.append("all"))
    bus.emit(Ready())
    assert order == ["first", "second", "all"]


def test_only_matching_kind_is_delivered(bus):
    listener = Mock()
    bus.subscribe(EventKind.CONNECTED, listener)
    bus.emit(Ready())
    listener.assert_not_called()
    bus.emit(Connected())
    listener.assert_called_once_with(Connected())


def test_failing_listener_is_isolated(bus, logger):
    after = Mock()
    bus.subscribe(EventKind.CONNECTION_FAILED, Mock(side_effect=ValueError("boom")))
    bus.subscribe(EventKind.CONNECTION_FAILED, after)
    event = ConnectionFailed(error="refused")
    bus.emit(event)
    after.assert_called_once_with(event)
    logger.error.assert_called_once()
    assert "boom" in logger.error.call_args[0][0]


def test_unsubscribe(bus, logger):
    listener = Mock()
    bus.subscribe(EventKind.READY, listener)
    assert bus.listener_count(EventKind.READY) == 1
    bus.unsubscribe(EventKind.READY, listener)
    bus.unsubscribe(EventKind.READY, listener)  # unknown listener is only logged
    bus.emit(Ready())
    listener.assert_not_called()
    assert bus.listener_count(EventKind.READY) == 0


def test_listener_subscribing_during_dispatch(bus):
    late = Mock()
    bus.subscribe(EventKind.READY, lambda event: bus.subscribe(EventKind.READY, late))
    bus.emit(Ready())
    late.assert_not_called()
    bus.emit(Ready())
    late.assert_called_once()


def test_event_payloads():
    result = PaymentResult(success=True, payment_id="cd" * 32, amount_sat=100, fee_sat=2, preimage="ef" * 32)
    assert Connected().to_json() == {}
    assert ConnectionFailed(error="x").to_json() == {"error": "x"}
    assert InvoiceCreated(invoice="lnbc1", amount=10).to_json() == {"invoice": "lnbc1", "amount": 10}
    assert PaymentReceived(amount=5).to_json() == {"amount": 5, "description": ""}
    assert BalanceChanged(old_balance=1, new_balance=2).to_json() == {"old": 1, "new": 2}
    assert PaymentSent(invoice="lnbc1", result=result).to_json() == {
        "invoice": "lnbc1",
        "result": {"success": True, "amount": 100, "fee": 2, "payment_id": "cd" * 32, "preimage": "ef" * 32},
    }


def test_payment_received_requires_positive_amount():
    with pytest.raises(ValueError):
        PaymentReceived(amount=0)


def test_event_kinds_match_notification_names():
    assert [kind.value for kind in EventKind] == ["connected", "connection_failed", "invoice_created",
                                                  "payment_sent", "payment_received", "balance_changed", "ready"]
    assert PaymentReceived(amount=1).kind is EventKind.PAYMENT_RECEIVED
