import enum
import os
from typing import Optional

import attr
from dotenv import load_dotenv

from .globals import get_session_logger
from .ledger_client import LedgerSessionError
from .session_logger import SessionLogger


class Network(enum.Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @classmethod
    def parse(cls, network_type: str) -> 'Network':
        network_type = network_type.strip().lower()
        if network_type == "bitcoin":  # CLN calls mainnet "bitcoin"
            return cls.MAINNET
        try:
            return cls(network_type)
        except ValueError:
            raise InvalidConfigError(f"Invalid network type: {network_type}")

    @property
    def cln_dirname(self) -> str:
        """Name of the network subdirectory in the CLN lightning-dir"""
        return "bitcoin" if self is Network.MAINNET else self.value


def _positive_interval(instance, attribute, value) -> None:
    if not value > 0:
        raise InvalidConfigError(f"{attribute.name} must be > 0, got {value}")


def _parse_bool(value: str) -> bool:
    value = value.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise InvalidConfigError(f"Invalid boolean value: {value}")


@attr.s
class SessionConfig:
    """Settings of the session itself, accepted by Session.connect"""
    auto_monitor_payments = attr.ib(type=bool, default=True)
    check_interval_seconds = attr.ib(type=float, default=2.0, converter=float, validator=_positive_interval)
    log_level = attr.ib(type=str, default="INFO")

    @classmethod
    def from_env(cls, *, logger: Optional[SessionLogger] = None) -> 'SessionConfig':
        """Load configuration from .env file or environment variables"""
        logger = logger or get_session_logger()
        load_dotenv()
        config = cls()

        if auto_monitor := os.getenv("AUTO_MONITOR_PAYMENTS"):
            config.auto_monitor_payments = _parse_bool(auto_monitor)
        else:
            logger.warning(f"No AUTO_MONITOR_PAYMENTS in env. Using default value: {config.auto_monitor_payments}")

        if interval := os.getenv("BALANCE_CHECK_INTERVAL"):
            try:
                interval = float(interval.strip())
            except ValueError:
                raise InvalidConfigError(f"BALANCE_CHECK_INTERVAL is not a number: {interval}")
            if not interval > 0:
                raise InvalidConfigError("BALANCE_CHECK_INTERVAL has to be > 0 seconds")
            config.check_interval_seconds = interval
        else:
            logger.warning(f"No BALANCE_CHECK_INTERVAL in env. "
                           f"Using default of {config.check_interval_seconds}s")

        if log_level := os.getenv("SESSION_LOG_LEVEL"):
            config.log_level = log_level.strip().upper()
            logger.change_level(config.log_level)

        logger.debug(f"Loaded session configuration: {config}")
        return config


@attr.s
class ConnectionConfig:
    """Credentials and location of the ledger backend, validated by the LedgerClient"""
    mnemonic = attr.ib(type=str, repr=False)
    api_key = attr.ib(type=str, repr=False)
    network = attr.ib(type=Network, default=Network.MAINNET)
    storage_dir = attr.ib(type=str, default=".")

    @classmethod
    def from_env(cls, *, logger: Optional[SessionLogger] = None) -> 'ConnectionConfig':
        """Load the connection parameters from .env file or environment variables"""
        logger = logger or get_session_logger()
        load_dotenv()

        storage_dir = os.getenv("LEDGER_STORAGE_DIR")
        if not storage_dir:
            raise InvalidConfigError("No storage directory found. Set LEDGER_STORAGE_DIR in env.")

        if network_str := os.getenv("LEDGER_NETWORK"):
            network = Network.parse(network_str)
        else:
            network = Network.MAINNET
            logger.warning(f"No LEDGER_NETWORK in env. Using default of {network.value}")

        mnemonic = os.getenv("LEDGER_MNEMONIC", "").strip()
        api_key = os.getenv("LEDGER_API_KEY", "").strip()
        if not mnemonic:
            logger.warning("No LEDGER_MNEMONIC in env, the ledger backend has to hold its own seed")

        config = cls(mnemonic=mnemonic, api_key=api_key, network=network, storage_dir=storage_dir.strip())
        logger.debug(f"Loaded connection configuration: {config}")
        return config


class InvalidConfigError(LedgerSessionError):
    pass
