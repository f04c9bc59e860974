import sys
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, Optional
from .globals import set_session_logger_global


def stderr_sink(name: str) -> Callable[..., None]:
    """Log method for running outside of CLN, writes to stderr the way CLN shows plugin output"""
    def log_method(msg: str, level: str = "info") -> None:
        print(f"{name}: {msg}", file=sys.stderr)
    return log_method


class SessionLogger:
    """Levelled logger writing through a CLN style log method (plugin.log or stderr).

    CLN plugins can only log at info level, so the level travels as message prefix.
    Suppressed debug messages are kept and written out before the next error."""
    LEVELS = {"DEBUG": 0, "INFO": 1, "WARNING": 2, "ERROR": 3}
    PREFIXES = {"DEBUG": "DEBUG: ", "INFO": "", "WARNING": "WARNING: ", "ERROR": "ERROR: "}  # type: Dict[str, str]

    def __init__(self, name: str, log_method: Optional[Callable[..., None]] = None, level: Optional[str] = "INFO"):
        self.name = name
        self.level = level
        self.logger = log_method if log_method is not None else stderr_sink(name)
        self.debug_buffer_size = 15
        self.debug_buffer = deque(maxlen=self.debug_buffer_size)  # type: Deque[str]
        set_session_logger_global(self)

    def _write(self, level: str, msg: str) -> None:
        self.logger(f"{self.PREFIXES[level]}{msg}", level="info")

    def debug(self, msg: str, override: bool = False):
        if override or self.is_enabled("DEBUG"):
            self._write("DEBUG", msg)
        else:
            self.debug_buffer.append(f"[{datetime.now().isoformat()}] {msg}")

    def info(self, msg: str):
        if self.is_enabled("INFO"):
            self._write("INFO", msg)

    def warning(self, msg: str):
        if self.is_enabled("WARNING"):
            self._write("WARNING", msg)

    def error(self, msg: str):
        self.replay_debug_buffer()
        self._write("ERROR", msg)

    def change_level(self, level: str):
        level = level.strip().upper()
        if level in self.LEVELS:
            self.level = level
        else:
            self.warning(f"SessionLogger: unknown log level {level}, keeping {self.level}")

    def is_enabled(self, level: str) -> bool:
        """True if messages of the given level pass the configured level, unknown levels count as INFO"""
        return self.LEVELS.get(level, 1) >= self.LEVELS.get(self.level, 1)

    def replay_debug_buffer(self) -> None:
        """Write out the suppressed debug messages that led up to an error"""
        if not self.debug_buffer:
            return
        self._write("DEBUG", f"{len(self.debug_buffer)} suppressed debug messages before the error:")
        while self.debug_buffer:
            self._write("DEBUG", self.debug_buffer.popleft())
