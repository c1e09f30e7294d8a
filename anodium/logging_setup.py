"""Logging setup and utilities."""

import logging
import os
import sys
from collections.abc import Callable
from typing import TextIO

__all__ = [
    "RECORD_ATTRIBUTES",
    "LogObjects",
    "LogRelayHandler",
    "add_handler",
    "format_fields",
    "get_logger",
    "init_logger",
    "is_debug",
    "remove_handler",
    "set_debug",
]

_ESC = "\x1b["
RESET = f"{_ESC}0m"

# (prefix codes) per level
LEVEL_STYLES = {
    logging.WARNING: "33;2",
    logging.ERROR: "31;2",
    logging.CRITICAL: "31;1",
}

# LogRecord attributes which are not user supplied fields
RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime", "taskName"}


class _DebugState:
    """Container for mutable debug state to avoid global statement."""

    value: bool = bool(os.environ.get("DEBUG"))


_debug_state = _DebugState()


def is_debug() -> bool:
    """Return the current debug state."""
    return _debug_state.value


def set_debug(value: bool) -> None:
    """Set the debug state."""
    _debug_state.value = value


def should_colorize(stream: TextIO | None = None) -> bool:
    """Determine if ANSI colors should be used for the given stream.

    Respects NO_COLOR and FORCE_COLOR, then falls back to TTY detection.
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    if stream is None:
        stream = sys.stderr
    return hasattr(stream, "isatty") and stream.isatty()


class LogObjects:
    """Reusable objects for loggers."""

    handlers: list[logging.Handler] = []
    loggers: dict[str, logging.Logger] = {}


class ScreenLogFormatter(logging.Formatter):
    """A formatter adding colors based on log level."""

    def __init__(self) -> None:
        super().__init__()
        log_format = r"%(name)20s - %(message)s // %(filename)s:%(lineno)d" if is_debug() else r"%(message)s"
        use_colors = should_colorize()
        self._default = logging.Formatter(log_format)
        self._formatters = {
            level: logging.Formatter(f"{_ESC}{codes}m{log_format}{RESET}" if use_colors else log_format)
            for level, codes in LEVEL_STYLES.items()
        }

    def format(self, record: logging.LogRecord) -> str:
        return self._formatters.get(record.levelno, self._default).format(record)


def init_logger(filename: str | None = None, force_debug: bool = False) -> None:
    """Initialize the logging system.

    Args:
        filename: Optional filename to log to
        force_debug: If True, force debug level
    """
    if force_debug:
        set_debug(True)

    logging.basicConfig()
    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(logging.Formatter(fmt=r"%(asctime)s [%(levelname)s] %(name)s :: %(message)s :: %(filename)s:%(lineno)d"))
        add_handler(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ScreenLogFormatter())
    add_handler(stream_handler)


def add_handler(handler: logging.Handler) -> None:
    """Register `handler` for every existing and future logger."""
    LogObjects.handlers.append(handler)
    for logger in LogObjects.loggers.values():
        logger.addHandler(handler)


def remove_handler(handler: logging.Handler) -> None:
    """Detach `handler` from every logger."""
    if handler in LogObjects.handlers:
        LogObjects.handlers.remove(handler)
    for logger in LogObjects.loggers.values():
        logger.removeHandler(handler)


def get_logger(name: str = "anodium", level: int | None = None) -> logging.Logger:
    """Return a named logger.

    Args:
        name (str): logger's name
        level (int): logger's level (auto if not set)

    Returns:
        The logger instance
    """
    logger = logging.getLogger(name)
    if level is None:
        logger.setLevel(logging.DEBUG if is_debug() else logging.WARNING)
    else:
        logger.setLevel(level)
    logger.propagate = False
    for handler in LogObjects.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    LogObjects.loggers[name] = logger
    logger.debug('Logger "%s" initialized', name)
    return logger


def format_fields(record: logging.LogRecord) -> str:
    """Render the user supplied `extra` fields of a record as `key=value` pairs.

    Strings are quoted, booleans become `t`/`f`, None becomes `f` and integers
    keep their plain representation.
    """
    parts = []
    for key, value in record.__dict__.items():
        if key in RECORD_ATTRIBUTES or key.startswith("_"):
            continue
        if isinstance(value, bool) or value is None:
            rendered = "t" if value else "f"
        elif isinstance(value, int | float):
            rendered = str(value)
        else:
            rendered = f'"{value}"'
        parts.append(f"{key}={rendered}")
    return " ".join(parts)


class LogRelayHandler(logging.Handler):
    """Duplicates log records into the overlay log consoles.

    Each record becomes a single line, `LEVEL message key=value ...`, handed
    to `sink`.
    """

    def __init__(self, sink: Callable[[str], None], level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.sink = sink

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname} {record.getMessage()}"
        fields = format_fields(record)
        return f"{line} {fields}" if fields else line

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink(self.format(record))
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)
