from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .session_logger import SessionLogger

_session_logger = None  # type: Optional[SessionLogger]


def set_session_logger_global(logger: 'SessionLogger') -> None:
    global _session_logger
    _session_logger = logger


def get_session_logger() -> 'SessionLogger':
    """Returns the most recently created SessionLogger, creates a stderr logger if none exists yet"""
    if _session_logger is None:
        from .session_logger import SessionLogger
        return SessionLogger("ledger-session")  # registers itself
    return _session_logger
