import asyncio
from typing import Optional

from .cln_ledger import CLNLedgerClient
from .cln_plugin import CLNPluginHost
from .session import Session
from .session_config import ConnectionConfig, Network, SessionConfig
from .session_logger import SessionLogger


class LedgerSessionPlugin:
    def __init__(
        self,
        plugin_handler: Optional[CLNPluginHost] = None,
        logger: Optional[SessionLogger] = None,
        config: Optional[SessionConfig] = None,
        ledger: Optional[CLNLedgerClient] = None,
        session: Optional[Session] = None
    ):
        self.plugin_handler = plugin_handler
        self.logger = logger
        self.config = config
        self.ledger = ledger
        self.session = session

    async def initialize(self):
        # cln plugin handler
        self.plugin_handler = await CLNPluginHost()

        # logging to cln logs
        self.logger = SessionLogger("ledger-session", self.plugin_handler.plugin.log)

        # user config (from .env file or env)
        self.config = SessionConfig.from_env(logger=self.logger)

        # the node we run in is the ledger
        self.ledger = CLNLedgerClient(rpc=self.plugin_handler.plugin.rpc, logger=self.logger)
        self.session = Session(self.ledger, config=self.config, logger=self.logger)
        self.plugin_handler.bind_session(self.session)

        connection = self.connection_from_cln(self.plugin_handler.fetch_cln_configuration())
        if not self.session.connect(connection):
            raise Exception("LedgerSessionPlugin: could not connect to the CLN node")

    @staticmethod
    def connection_from_cln(cln_configuration: dict) -> ConnectionConfig:
        """The plugin uses the network and lightning-dir of the node it runs in"""
        configs = cln_configuration.get("configs", cln_configuration)
        network = Network.parse(configs["network"]["value_str"])
        storage_dir = configs["lightning-dir"]["value_str"]
        return ConnectionConfig(mnemonic="", api_key="", network=network, storage_dir=storage_dir)

    async def run(self):
        if not self.is_initialized:
            await self.initialize()
        try:
            await self.session.scheduler.run()
        finally:
            self.session.disconnect()
        raise Exception("LedgerSessionPlugin poll loop exited unexpectedly")

    @property
    def is_initialized(self) -> bool:
        if (self.plugin_handler
            and self.logger
            and self.config
            and self.ledger
            and self.session):
            return True
        return False
