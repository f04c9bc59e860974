import asyncio
from concurrent.futures import Future
from typing import Any, Callable, Optional, TYPE_CHECKING

from pyln.client import Plugin

from .events import EventKind, SessionEvent

if TYPE_CHECKING:
    from .session import Session


class CLNPluginHost:
    """Runs the pyln plugin in its own thread and forwards its rpc methods to the session.
    Method calls are executed on the asyncio event loop so the session is only touched from one thread."""

    def __init__(self):
        self.plugin = Plugin()
        self.__session = None  # type: Optional[Session]
        self.__loop = None  # type: Optional[asyncio.AbstractEventLoop]
        for kind in EventKind:
            self.plugin.add_notification_topic(kind.value)
        self.__register_methods()
        self.__task = None

    def __await__(self):
        async def __run():
            self.__loop = asyncio.get_running_loop()
            self.__task = asyncio.create_task(asyncio.to_thread(self.plugin.run))
            await asyncio.wait_for(self.__await_rpc(), timeout=50)
            return self
        return __run().__await__()

    async def __await_rpc(self):
        """Wait for the rpc to be ready, this will take quite different amounts of time depending on the environment"""
        while True:
            if self.plugin.rpc is not None:
                return
            if self.__task.done():
                raise Exception("Plugin failed to start, thread returned")
            await asyncio.sleep(0.5)

    def fetch_cln_configuration(self) -> dict:
        configuration = self.plugin.rpc.listconfigs()
        return configuration

    def bind_session(self, session: 'Session', loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route rpc methods to the session, on the given loop or the loop the plugin was awaited on"""
        self.__session = session
        if loop is not None:
            self.__loop = loop
        session.events.subscribe_all(self.publish_event)

    def publish_event(self, event: SessionEvent) -> None:
        """Forward a session event as CLN custom notification"""
        self.plugin.notify(event.kind.value, event.to_json())

    def __register_methods(self) -> None:
        methods = {
            "ledger-status": self._rpc_status,
            "ledger-balance": self._rpc_balance,
            "ledger-invoice": self._rpc_invoice,
            "ledger-pay": self._rpc_pay,
            "ledger-address": self._rpc_address,
            "ledger-payments": self._rpc_payments,
            "ledger-sync": self._rpc_sync,
            "ledger-deposits": self._rpc_deposits,
            "ledger-claim-deposit": self._rpc_claim_deposit,
        }
        for name, handler in methods.items():
            self.plugin.add_method(name, handler, background=True)

    def _dispatch(self, request, func: Callable[..., Any], *args) -> None:
        """Run func on the event loop and resolve the cln request once it returned"""
        if self.__session is None or self.__loop is None:
            return request.set_exception(Exception("ledger session is not ready yet"))

        async def __call():
            return func(*args)

        def __done(future: Future):
            if future.exception() is not None:
                request.set_exception(future.exception())
            else:
                request.set_result(future.result())

        asyncio.run_coroutine_threadsafe(__call(), self.__loop).add_done_callback(__done)

    def _rpc_status(self, request):
        def status():
            return {
                "connected": self.__session.is_connected,
                "monitoring": self.__session.monitoring_active,
                "last_known_balance_sat": self.__session.last_known_balance,
                "check_interval_seconds": self.__session.scheduler.interval_seconds,
            }
        self._dispatch(request, status)

    def _rpc_balance(self, request):
        self._dispatch(request, lambda: {"balance_sat": self.__session.balance()})

    def _rpc_invoice(self, amount_sat: int, request, description: str = ""):
        self._dispatch(request, lambda: {"bolt11": self.__session.create_invoice(int(amount_sat), description)})

    def _rpc_pay(self, bolt11: str, request, timeout: int = 0):
        self._dispatch(request, lambda: self.__session.pay(bolt11, int(timeout)).to_json())

    def _rpc_address(self, request, kind: str = "bitcoin"):
        def address():
            if kind == "spark":
                return {"address": self.__session.spark_address()}
            return {"address": self.__session.bitcoin_address()}
        self._dispatch(request, address)

    def _rpc_payments(self, request, offset: int = 0, limit: int = 0):
        def payments():
            records = self.__session.list_payments(int(offset), int(limit))
            return {"payments": [record.to_json() for record in records]}
        self._dispatch(request, payments)

    def _rpc_sync(self, request):
        self._dispatch(request, lambda: {"synced": self.__session.sync_wallet()})

    def _rpc_deposits(self, request):
        def deposits():
            return {"deposits": [deposit.to_json() for deposit in self.__session.list_unclaimed_deposits()]}
        self._dispatch(request, deposits)

    def _rpc_claim_deposit(self, txid: str, vout: int, request, max_fee_sat: int = 0):
        self._dispatch(request, lambda: self.__session.claim_deposit(txid, int(vout), int(max_fee_sat)).to_json())
