from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import attr


@attr.s(frozen=True)
class PaymentResult:
    """Outcome of an outgoing payment as reported by the ledger backend"""
    success = attr.ib(type=bool)
    error = attr.ib(type=Optional[str], default=None)
    payment_id = attr.ib(type=Optional[str], default=None)
    amount_sat = attr.ib(type=int, default=0)
    fee_sat = attr.ib(type=int, default=0)
    preimage = attr.ib(type=Optional[str], default=None, repr=False)

    @classmethod
    def failed(cls, error: str) -> 'PaymentResult':
        return cls(success=False, error=error)

    def to_json(self) -> Dict[str, Any]:
        """The result map, only contains the fields that are set"""
        if not self.success:
            return {"success": False, "error": self.error or ""}
        result = {"success": True, "amount": self.amount_sat, "fee": self.fee_sat}
        if self.payment_id is not None:
            result["payment_id"] = self.payment_id
        if self.preimage is not None:
            result["preimage"] = self.preimage
        return result


@attr.s(frozen=True)
class PaymentRecord:
    """One entry of the payment history"""
    id = attr.ib(type=str)
    amount_sat = attr.ib(type=int)
    fees_sat = attr.ib(type=int)
    timestamp = attr.ib(type=int)
    status = attr.ib(type=str)
    payment_type = attr.ib(type=str)  # "send" or "receive"
    method = attr.ib(type=str, default="lightning")

    def to_json(self) -> Dict[str, Any]:
        return attr.asdict(self)


@attr.s(frozen=True)
class DepositRecord:
    """On-chain deposit that has not been claimed into the spendable balance yet"""
    txid = attr.ib(type=str)
    vout = attr.ib(type=int)
    amount_sat = attr.ib(type=int)

    def to_json(self) -> Dict[str, Any]:
        return attr.asdict(self)


class LedgerClient(ABC):
    """Synchronous interface to the Lightning ledger backend consumed by the Session.
    Amounts are in satoshis. Empty strings signal an unavailable or failed result."""

    @abstractmethod
    def connect(self, mnemonic: str, api_key: str, network: str, storage_dir: str) -> bool:
        ...

    @abstractmethod
    def balance(self) -> int:
        """Current balance, raises on failure"""

    @abstractmethod
    def create_invoice(self, amount_sat: int, description: str) -> str:
        ...

    @abstractmethod
    def pay(self, invoice: str, timeout_seconds: int) -> PaymentResult:
        ...

    @abstractmethod
    def bitcoin_address(self) -> str:
        ...

    @abstractmethod
    def spark_address(self) -> str:
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def disconnect(self) -> None:
        ...

    @abstractmethod
    def sync_wallet(self) -> bool:
        ...

    @abstractmethod
    def list_payments(self, offset: int, limit: int) -> List[PaymentRecord]:
        ...

    @abstractmethod
    def list_unclaimed_deposits(self) -> List[DepositRecord]:
        ...

    @abstractmethod
    def claim_deposit(self, txid: str, vout: int, max_fee_sat: int) -> PaymentResult:
        """max_fee_sat of 0 accepts any fee"""


class LedgerSessionError(Exception):
    pass

class ClnRpcError(LedgerSessionError):
    pass
