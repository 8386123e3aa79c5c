"""
ScriptFlow Logging Configuration

Package-wide logging setup. Every record carries a ``session`` field so that
interleaved generation runs can be told apart in one log stream; the field is
bound per task with ``session_context``.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


class LogLevel(Enum):
    """Log level enumeration."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


ROOT_LOGGER_NAME = "scriptflow"
NO_SESSION = "-"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(session)s | %(name)s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(session)s | %(name)s:%(lineno)d | %(message)s"

_session_var: ContextVar[str] = ContextVar("scriptflow_session", default=NO_SESSION)
_initialized: bool = False


class SessionFilter(logging.Filter):
    """Stamp each record with the session bound to the current task."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session = _session_var.get()
        return True


@contextmanager
def session_context(session_id: str) -> Iterator[None]:
    """Bind ``session_id`` to log records emitted inside the block."""
    token = _session_var.set(session_id or NO_SESSION)
    try:
        yield
    finally:
        _session_var.reset(token)


def current_session() -> str:
    return _session_var.get()


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
    console_output: bool = True
) -> None:
    """
    Configure the ``scriptflow`` logger tree.

    Args:
        level: Minimum log level to capture
        log_file: Optional path to an additional log file
        verbose: Include line numbers in each record
        console_output: Write records to stderr
    """
    global _initialized

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level.value)
    root_logger.handlers.clear()
    root_logger.propagate = False

    formatter = logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT, datefmt="%H:%M:%S")
    handlers = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level.value)
        handler.setFormatter(formatter)
        handler.addFilter(SessionFilter())
        root_logger.addHandler(handler)

    _initialized = True
    root_logger.debug(f"Logging configured at {level.name}")


def get_logger(name: str) -> logging.Logger:
    """Return the ``scriptflow.<name>`` logger, configuring defaults on first use."""
    if not _initialized:
        setup_logging()
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
