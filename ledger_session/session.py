from typing import List, Optional

from .balance_oracle import BalanceOracle, OracleReadError
from .change_detector import ChangeDetector
from .event_bus import EventBus
from .events import Connected, ConnectionFailed, InvoiceCreated, PaymentSent, Ready
from .globals import get_session_logger
from .ledger_client import DepositRecord, LedgerClient, LedgerSessionError, PaymentRecord, PaymentResult
from .poll_scheduler import PollScheduler
from .session_config import ConnectionConfig, SessionConfig
from .session_logger import SessionLogger


class Session:
    """Managed session over a LedgerClient.

    Owns the connection state, the last known balance and the poll scheduler. The last known balance
    is only written by the change detector from the poll path."""

    def __init__(self, ledger: LedgerClient, *,
                 config: Optional[SessionConfig] = None,
                 events: Optional[EventBus] = None,
                 logger: Optional[SessionLogger] = None):
        self._logger = logger or get_session_logger()
        self._ledger = ledger
        self.config = config or SessionConfig()
        self.events = events or EventBus(logger=self._logger)
        self._oracle = BalanceOracle(ledger)
        self._detector = ChangeDetector(self._oracle, self.events, logger=self._logger)
        self.scheduler = PollScheduler(self.config.check_interval_seconds, self._poll_tick, logger=self._logger)
        self._initialized = False
        self._monitoring_active = False
        self._last_known_balance = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def monitoring_active(self) -> bool:
        return self._monitoring_active

    @property
    def last_known_balance(self) -> int:
        return self._last_known_balance

    @property
    def is_connected(self) -> bool:
        return self._initialized and self._ledger.is_connected()

    def connect(self, connection: ConnectionConfig, settings: Optional[SessionConfig] = None) -> bool:
        """Connect the ledger client, capture the baseline balance and start monitoring if configured.
        Returns False and emits connection_failed if the ledger could not be connected."""
        if self._initialized:
            raise AlreadyConnectedError("Session is already connected, disconnect first")
        if settings is not None:
            self.config = settings
            self.scheduler.interval_seconds = settings.check_interval_seconds

        self._logger.info(f"Session: connecting to ledger ({connection.network.value})")
        try:
            connected = self._ledger.connect(connection.mnemonic, connection.api_key,
                                             connection.network.value, connection.storage_dir)
        except Exception as e:
            connected = False
            reason = f"ledger client raised on connect: {e}"
        else:
            reason = "ledger client refused the connection"
        if not connected:
            return self._connection_failed(reason)

        try:
            baseline = self._oracle.read()
        except OracleReadError as e:
            self._ledger.disconnect()
            return self._connection_failed(f"could not read baseline balance: {e}")

        self._last_known_balance = baseline
        self._initialized = True
        self._logger.info(f"Session: connected, baseline balance {baseline} sat")
        self.events.emit(Connected())
        if self.config.auto_monitor_payments:
            self.start_monitoring()
        self.events.emit(Ready())
        return True

    def _connection_failed(self, reason: str) -> bool:
        self._logger.error(f"Session: connection failed: {reason}")
        self.events.emit(ConnectionFailed(error=reason))
        return False

    def disconnect(self) -> None:
        if not self._initialized:
            return
        self.stop_monitoring()
        self._initialized = False
        try:
            self._ledger.disconnect()
        except Exception as e:
            self._logger.error(f"Session: ledger client failed to disconnect: {e}")
            return
        self._logger.info("Session: disconnected")

    def balance(self) -> int:
        """Read-only balance lookup, 0 if not connected or the read fails"""
        if not self._initialized:
            return 0
        try:
            return self._ledger.balance()
        except Exception as e:
            self._logger.error(f"Session: balance read failed: {e}")
            return 0

    def create_invoice(self, amount_sat: int, description: str = "") -> str:
        self._require_initialized("create_invoice")
        if amount_sat <= 0:
            raise InvalidAmountError(f"invoice amount must be > 0 sat, got {amount_sat}")
        invoice = self._ledger.create_invoice(amount_sat, description)
        if not invoice:
            raise EmptyResultError(f"ledger returned no invoice for {amount_sat} sat")
        self._logger.debug(f"Session: created invoice over {amount_sat} sat: {invoice}")
        self.events.emit(InvoiceCreated(invoice=invoice, amount=amount_sat))
        return invoice

    def pay(self, invoice: str, timeout_seconds: int = 0) -> PaymentResult:
        """Pay a bolt11 invoice, payment_sent is only emitted for successful payments"""
        self._require_initialized("pay")
        result = self._ledger.pay(invoice, timeout_seconds)
        if result.success:
            self._logger.info(f"Session: payment sent, {result.amount_sat} sat (fee {result.fee_sat} sat)")
            self.events.emit(PaymentSent(invoice=invoice, result=result))
        else:
            self._logger.warning(f"Session: payment failed: {result.error}")
        return result

    def bitcoin_address(self) -> str:
        if not self._initialized:
            return ""
        return self._ledger.bitcoin_address()

    def spark_address(self) -> str:
        if not self._initialized:
            return ""
        return self._ledger.spark_address()

    def sync_wallet(self) -> bool:
        if not self._initialized:
            return False
        return self._ledger.sync_wallet()

    def list_payments(self, offset: int = 0, limit: int = 0) -> List[PaymentRecord]:
        if not self._initialized:
            return []
        return self._ledger.list_payments(offset, limit)

    def list_unclaimed_deposits(self) -> List[DepositRecord]:
        if not self._initialized:
            return []
        return self._ledger.list_unclaimed_deposits()

    def claim_deposit(self, txid: str, vout: int, max_fee_sat: int = 0) -> PaymentResult:
        """Claim an on-chain deposit into the wallet, a failed result is returned when not connected"""
        if not self._initialized:
            return PaymentResult.failed("session is not connected")
        result = self._ledger.claim_deposit(txid, vout, max_fee_sat)
        if not result.success:
            self._logger.warning(f"Session: claiming deposit {txid}:{vout} failed: {result.error}")
        return result

    def start_monitoring(self) -> None:
        if self._monitoring_active:
            return
        if not self._initialized:
            self._logger.warning("Session: cannot monitor payments before connecting")
            return
        self._monitoring_active = True
        self.scheduler.start()
        self._logger.debug("Session: payment monitoring started")

    def stop_monitoring(self) -> None:
        if not self._monitoring_active:
            return
        self._monitoring_active = False
        self.scheduler.stop()
        self._logger.debug("Session: payment monitoring stopped")

    def process(self, elapsed_seconds: float) -> bool:
        """Host frame hook, returns True if a poll tick ran"""
        return self.scheduler.advance(elapsed_seconds)

    def _poll_tick(self) -> None:
        if not (self._monitoring_active and self._initialized):
            return
        try:
            self._detector.check(self)
        except OracleReadError as e:
            self._logger.warning(f"Session: skipping balance check: {e}")

    def _commit_balance(self, balance: int) -> None:
        self._last_known_balance = balance

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise NotInitializedError(f"{operation}: session is not connected")


class NotInitializedError(LedgerSessionError):
    pass

class AlreadyConnectedError(LedgerSessionError):
    pass

class InvalidAmountError(LedgerSessionError):
    pass

class EmptyResultError(LedgerSessionError):
    pass
