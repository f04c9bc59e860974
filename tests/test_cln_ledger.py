import pytest
from unittest.mock import Mock, patch

from pyln.client import LightningRpc, RpcError

from ledger_session.cln_ledger import CLNLedgerClient, msat_to_sat
from ledger_session.ledger_client import ClnRpcError, DepositRecord, PaymentRecord
from ledger_session.session_config import Network
from ledger_session.session_logger import SessionLogger


@pytest.fixture
def logger():
    return Mock(spec=SessionLogger)


@pytest.fixture
def rpc():
    rpc = Mock(spec=LightningRpc)
    rpc.getinfo.return_value = {"id": "02" + "ab" * 32, "alias": "node", "network": "regtest"}
    return rpc


@pytest.fixture
def client(rpc, logger):
    return CLNLedgerClient(rpc=rpc, logger=logger)


def rpc_error(method: str, message: str) -> RpcError:
    return RpcError(method, {}, {"code": -1, "message": message})


def test_msat_to_sat():
    assert msat_to_sat(1_500_999) == 1500
    assert msat_to_sat("2000msat") == 2
    assert msat_to_sat(None) == 0


def test_connect_injected_rpc(client, rpc):
    assert client.connect("", "", "regtest", "/ignored") is True
    assert client.is_connected()
    rpc.getinfo.assert_called_once()


def test_connect_network_mismatch(client, rpc, logger):
    assert client.connect("", "", "mainnet", "/ignored") is False
    assert not client.is_connected()
    logger.error.assert_called_once()


def test_connect_invalid_network(client, rpc):
    assert client.connect("", "", "liquid", "/ignored") is False
    rpc.getinfo.assert_not_called()


def test_connect_creates_rpc_from_storage_dir(logger, rpc, tmp_path):
    with patch("ledger_session.cln_ledger.LightningRpc", return_value=rpc) as mock_rpc_class:
        client = CLNLedgerClient(logger=logger)
        assert client.connect("words", "key", "regtest", str(tmp_path)) is True
        mock_rpc_class.assert_called_once_with(str(tmp_path / "regtest" / "lightning-rpc"))
    client.disconnect()
    assert not client.is_connected()


def test_connect_unreachable(logger, rpc, tmp_path):
    rpc.getinfo.side_effect = FileNotFoundError("no socket")
    with patch("ledger_session.cln_ledger.LightningRpc", return_value=rpc):
        client = CLNLedgerClient(logger=logger)
        assert client.connect("", "", "regtest", str(tmp_path)) is False
    assert not client.is_connected()


def test_rpc_socket_path_inside_network_dir(tmp_path):
    (tmp_path / "lightning-rpc").touch()
    assert CLNLedgerClient.rpc_socket_path(str(tmp_path), Network.MAINNET) == str(tmp_path / "lightning-rpc")
    assert CLNLedgerClient.rpc_socket_path("/home/cln/.lightning", Network.MAINNET) == \
        "/home/cln/.lightning/bitcoin/lightning-rpc"


def test_balance(client, rpc):
    rpc.listfunds.return_value = {
        "channels": [
            {"state": "CHANNELD_NORMAL", "our_amount_msat": 700_000},
            {"state": "CHANNELD_AWAITING_LOCKIN", "our_amount_msat": 900_000},
        ],
        "outputs": [
            {"status": "confirmed", "amount_msat": 300_000, "reserved": False},
            {"status": "confirmed", "amount_msat": 50_000, "reserved": True},
            {"status": "unconfirmed", "amount_msat": 10_000},
        ],
    }
    assert client.balance() == 1000


def test_balance_rpc_failure(client, rpc):
    rpc.listfunds.side_effect = rpc_error("listfunds", "failed")
    with pytest.raises(ClnRpcError):
        client.balance()


def test_create_invoice(client, rpc):
    rpc.invoice.return_value = {"bolt11": "lnbcrt10u1ptest"}
    assert client.create_invoice(1000, "coffee") == "lnbcrt10u1ptest"
    kwargs = rpc.invoice.call_args.kwargs
    assert kwargs["amount_msat"] == 1_000_000
    assert kwargs["description"] == "coffee"
    assert len(kwargs["label"]) == 16


def test_create_invoice_any_amount(client, rpc):
    rpc.invoice.return_value = {"bolt11": "lnbcrt1ptest"}
    client.create_invoice(0, "tip")
    assert rpc.invoice.call_args.kwargs["amount_msat"] == "any"


def test_create_invoice_failure(client, rpc):
    rpc.invoice.side_effect = rpc_error("invoice", "duplicate label")
    assert client.create_invoice(1000, "coffee") == ""


def test_pay_success(client, rpc):
    rpc.listpays.return_value = {"pays": []}
    rpc.pay.return_value = {"status": "complete", "payment_preimage": "11" * 32, "payment_hash": "22" * 32,
                            "amount_msat": 500_000, "amount_sent_msat": 501_000}
    result = client.pay("lnbcrt5u1p", 30)
    rpc.pay.assert_called_once_with(bolt11="lnbcrt5u1p", retry_for=30)
    assert result.success
    assert result.amount_sat == 500
    assert result.fee_sat == 1
    assert result.payment_id == "22" * 32


def test_pay_default_timeout(client, rpc):
    rpc.listpays.return_value = {"pays": []}
    rpc.pay.return_value = {"status": "failed"}
    result = client.pay("lnbcrt5u1p", 0)
    rpc.pay.assert_called_once_with(bolt11="lnbcrt5u1p", retry_for=None)
    assert not result.success


def test_pay_already_complete(client, rpc):
    rpc.listpays.return_value = {"pays": [{"status": "complete", "preimage": "33" * 32, "payment_hash": "44" * 32,
                                           "amount_msat": 1000, "amount_sent_msat": 1000}]}
    result = client.pay("lnbcrt1", 10)
    assert result.success
    assert result.preimage == "33" * 32
    rpc.pay.assert_not_called()


def test_pay_already_pending(client, rpc):
    rpc.listpays.return_value = {"pays": [{"status": "pending"}]}
    result = client.pay("lnbcrt1", 10)
    assert not result.success
    assert "pending" in result.error
    rpc.pay.assert_not_called()


def test_pay_rpc_error(client, rpc):
    rpc.listpays.return_value = {"pays": []}
    rpc.pay.side_effect = rpc_error("pay", "Ran out of routes")
    result = client.pay("lnbcrt1", 10)
    assert not result.success
    assert "Ran out of routes" in result.error


def test_addresses(client, rpc, logger):
    rpc.newaddr.return_value = {"bech32": "bcrt1qxyz"}
    assert client.bitcoin_address() == "bcrt1qxyz"
    assert client.spark_address() == ""
    rpc.newaddr.side_effect = rpc_error("newaddr", "no")
    assert client.bitcoin_address() == ""


def test_sync_wallet(client, rpc):
    assert client.sync_wallet() is True
    rpc.getinfo.return_value = {"warning_bitcoind_sync": "Bitcoind is not up-to-date with network."}
    assert client.sync_wallet() is False


def test_list_payments(client, rpc):
    rpc.listpays.return_value = {"pays": [
        {"payment_hash": "aa", "status": "complete", "created_at": 100,
         "amount_msat": 10_000, "amount_sent_msat": 12_000},
    ]}
    rpc.listinvoices.return_value = {"invoices": [
        {"payment_hash": "bb", "status": "paid", "paid_at": 200, "amount_received_msat": 5_000},
        {"payment_hash": "cc", "status": "unpaid"},
        {"payment_hash": "dd", "status": "paid", "paid_at": 50, "amount_received_msat": 1_000},
    ]}
    records = client.list_payments(0, 0)
    assert [record.id for record in records] == ["bb", "aa", "dd"]
    assert records[1] == PaymentRecord(id="aa", amount_sat=10, fees_sat=2, timestamp=100,
                                       status="complete", payment_type="send")
    assert [record.id for record in client.list_payments(1, 1)] == ["aa"]


def test_list_payments_rpc_failure(client, rpc):
    rpc.listpays.side_effect = rpc_error("listpays", "failed")
    assert client.list_payments(0, 0) == []


def test_list_unclaimed_deposits(client, rpc):
    rpc.listfunds.return_value = {"outputs": [
        {"txid": "aa" * 32, "output": 1, "status": "unconfirmed", "amount_msat": 20_000_000},
        {"txid": "bb" * 32, "output": 0, "status": "confirmed", "amount_msat": 5_000_000},
    ]}
    assert client.list_unclaimed_deposits() == [DepositRecord(txid="aa" * 32, vout=1, amount_sat=20_000)]
    rpc.listfunds.side_effect = rpc_error("listfunds", "failed")
    assert client.list_unclaimed_deposits() == []


def test_claim_deposit_not_needed(client, rpc):
    result = client.claim_deposit("aa" * 32, 1, 0)
    assert not result.success
    assert "once confirmed" in result.error
