import os
from typing import Any, List, Optional

from pyln.client import LightningRpc

from .globals import get_session_logger
from .ledger_client import ClnRpcError, DepositRecord, LedgerClient, PaymentRecord, PaymentResult
from .session_config import InvalidConfigError, Network
from .session_logger import SessionLogger


def msat_to_sat(amount: Any) -> int:
    """pyln returns msat fields as Millisatoshi objects, older nodes as '1000msat' strings"""
    if amount is None:
        return 0
    if hasattr(amount, "millisatoshis"):
        return int(amount.millisatoshis) // 1000
    if isinstance(amount, str) and amount.endswith("msat"):
        amount = amount[:-4]
    return int(amount) // 1000


class CLNLedgerClient(LedgerClient):
    """LedgerClient backed by a Core Lightning node through its JSON-RPC unix socket.
    CLN holds its own hsm_secret, so mnemonic and api key are not used by this client."""
    SPENDABLE_CHANNEL_STATES = ("CHANNELD_NORMAL",)

    def __init__(self, *, rpc: Optional[LightningRpc] = None, logger: Optional[SessionLogger] = None):
        self._rpc = rpc  # when running as plugin the rpc of the plugin is passed in
        self._injected_rpc = rpc is not None
        self._connected = False
        self._logger = logger or get_session_logger()

    @staticmethod
    def rpc_socket_path(storage_dir: str, network: Network) -> str:
        direct_path = os.path.join(storage_dir, "lightning-rpc")
        if os.path.exists(direct_path):  # storage_dir already is the network dir
            return direct_path
        return os.path.join(storage_dir, network.cln_dirname, "lightning-rpc")

    def connect(self, mnemonic: str, api_key: str, network: str, storage_dir: str) -> bool:
        try:
            requested_network = Network.parse(network)
        except InvalidConfigError as e:
            self._logger.error(f"CLNLedgerClient: {e}")
            return False
        if mnemonic or api_key:
            self._logger.debug("CLNLedgerClient: ignoring mnemonic/api key, CLN uses its own hsm_secret")

        try:
            if not self._injected_rpc:
                self._rpc = LightningRpc(self.rpc_socket_path(storage_dir, requested_network))
            info = self._rpc.getinfo()
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: could not reach CLN rpc: {e}")
            self._drop_rpc()
            return False

        try:
            node_network = Network.parse(info.get("network", ""))
        except InvalidConfigError:
            node_network = None
        if node_network is not requested_network:
            self._logger.error(f"CLNLedgerClient: node runs on {info.get('network')}, "
                               f"requested {requested_network.value}")
            self._drop_rpc()
            return False

        self._connected = True
        self._logger.info(f"CLNLedgerClient: connected to node {info.get('id')} ({info.get('alias', '')})")
        return True

    def _drop_rpc(self) -> None:
        self._connected = False
        if not self._injected_rpc:
            self._rpc = None

    def balance(self) -> int:
        """Spendable balance: our side of normal channels plus confirmed unreserved on-chain outputs"""
        try:
            funds = self._rpc.listfunds()
        except Exception as e:
            raise ClnRpcError(f"listfunds call to CLN failed: {e}")
        balance_sat = 0
        for channel in funds.get("channels", []):
            if channel.get("state") in self.SPENDABLE_CHANNEL_STATES:
                balance_sat += msat_to_sat(channel.get("our_amount_msat"))
        for output in funds.get("outputs", []):
            if output.get("status") == "confirmed" and not output.get("reserved", False):
                balance_sat += msat_to_sat(output.get("amount_msat"))
        return balance_sat

    def create_invoice(self, amount_sat: int, description: str) -> str:
        label_hex = os.urandom(8).hex()  # unique internal identifier, can be used to fetch invoice status later
        amount_msat = amount_sat * 1000 if amount_sat > 0 else "any"
        try:
            result = self._rpc.invoice(amount_msat=amount_msat,
                                       label=label_hex,
                                       description=description)
            return result["bolt11"]
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: invoice call to CLN failed: {e}")
            return ""

    def pay(self, invoice: str, timeout_seconds: int) -> PaymentResult:
        try:  # first check if payment was already initiated earlier
            for existing in self._rpc.listpays(bolt11=invoice).get("pays", []):
                if existing["status"] == "complete":
                    return self._payment_result(existing)
                elif existing["status"] == "pending":
                    return PaymentResult.failed("payment is already pending")
        except Exception as e:
            self._logger.debug(f"CLNLedgerClient: listpays lookup failed: {e}")

        retry_for = timeout_seconds if timeout_seconds > 0 else None  # CLN default otherwise
        try:
            result = self._rpc.pay(bolt11=invoice, retry_for=retry_for)
        except Exception as e:
            return PaymentResult.failed(f"pay call to CLN failed: {e}")

        if result.get("status") == "complete" and result.get("payment_preimage"):
            return self._payment_result(result)
        return PaymentResult.failed(f"payment not completed: {result.get('status')}")

    @staticmethod
    def _payment_result(pay: dict) -> PaymentResult:
        amount_sat = msat_to_sat(pay.get("amount_msat"))
        sent_sat = msat_to_sat(pay.get("amount_sent_msat"))
        return PaymentResult(success=True,
                             payment_id=pay.get("payment_hash"),
                             amount_sat=amount_sat,
                             fee_sat=max(sent_sat - amount_sat, 0),
                             preimage=pay.get("payment_preimage") or pay.get("preimage"))

    def bitcoin_address(self) -> str:
        try:
            return self._rpc.newaddr()["bech32"]
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: newaddr call to CLN failed: {e}")
            return ""

    def spark_address(self) -> str:
        self._logger.debug("CLNLedgerClient: spark addresses are not supported by CLN")
        return ""

    def is_connected(self) -> bool:
        return self._connected and self._rpc is not None

    def disconnect(self) -> None:
        if self._connected:
            self._logger.info("CLNLedgerClient: disconnected")
        self._drop_rpc()

    def sync_wallet(self) -> bool:
        """CLN syncs by itself, we report whether it is caught up with bitcoind"""
        try:
            info = self._rpc.getinfo()
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: getinfo call to CLN failed: {e}")
            return False
        for warning in ("warning_bitcoind_sync", "warning_lightningd_sync"):
            if warning in info:
                self._logger.info(f"CLNLedgerClient: {info[warning]}")
                return False
        return True

    def list_payments(self, offset: int, limit: int) -> List[PaymentRecord]:
        """Sent and received lightning payments, newest first"""
        try:
            pays = self._rpc.listpays().get("pays", [])
            invoices = self._rpc.listinvoices().get("invoices", [])
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: payment history rpc failed: {e}")
            return []

        records = []
        for pay in pays:
            amount_sat = msat_to_sat(pay.get("amount_msat"))
            records.append(PaymentRecord(id=pay.get("payment_hash", ""),
                                         amount_sat=amount_sat,
                                         fees_sat=max(msat_to_sat(pay.get("amount_sent_msat")) - amount_sat, 0),
                                         timestamp=int(pay.get("created_at", 0)),
                                         status=pay.get("status", "unknown"),
                                         payment_type="send"))
        for inv in invoices:
            if inv.get("status") != "paid":
                continue
            records.append(PaymentRecord(id=inv.get("payment_hash", ""),
                                         amount_sat=msat_to_sat(inv.get("amount_received_msat")),
                                         fees_sat=0,
                                         timestamp=int(inv.get("paid_at", 0)),
                                         status="complete",
                                         payment_type="receive"))
        records.sort(key=lambda record: record.timestamp, reverse=True)
        if offset > 0:
            records = records[offset:]
        if limit > 0:
            records = records[:limit]
        return records

    def list_unclaimed_deposits(self) -> List[DepositRecord]:
        """On-chain outputs that are not confirmed yet and therefore not part of the balance"""
        try:
            outputs = self._rpc.listfunds().get("outputs", [])
        except Exception as e:
            self._logger.error(f"CLNLedgerClient: listfunds call to CLN failed: {e}")
            return []
        return [DepositRecord(txid=output["txid"],
                              vout=int(output["output"]),
                              amount_sat=msat_to_sat(output.get("amount_msat")))
                for output in outputs if output.get("status") == "unconfirmed"]

    def claim_deposit(self, txid: str, vout: int, max_fee_sat: int) -> PaymentResult:
        self._logger.debug(f"CLNLedgerClient: claim of {txid}:{vout} requested, CLN claims deposits on confirmation")
        return PaymentResult.failed("CLN adds on-chain deposits to the wallet once confirmed, nothing to claim")
