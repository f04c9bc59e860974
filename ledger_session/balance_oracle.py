from .ledger_client import LedgerClient, LedgerSessionError


class BalanceOracle:
    """Reads the current ledger balance, no caching"""

    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger

    def read(self) -> int:
        try:
            balance = self._ledger.balance()
        except Exception as e:
            raise OracleReadError(f"BalanceOracle: balance read failed: {e}") from e
        if not isinstance(balance, int) or balance < 0:
            raise OracleReadError(f"BalanceOracle: invalid balance returned: {balance!r}")
        return balance


class OracleReadError(LedgerSessionError):
    pass
