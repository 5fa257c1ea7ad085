"""
logger.py
---------
Centralized logging configuration.
All modules should use `get_logger(__name__)` to obtain a logger instance.
"""

import logging
import re
import sys

from finance_tracker import config

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_initialized = False

_SENSITIVE = [
    re.compile(r"(?i)\b(password|token|secret|authorization)(\"?\s*[:=]\s*\"?)([^\s\",}]+)"),
    re.compile(r"(?i)\b(bearer)(\s+)([^\s\",}]+)"),
]


class RedactingFilter(logging.Filter):
    """Mask credentials that slip into log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SENSITIVE:
            redacted = pattern.sub(r"\1\2[REDACTED]", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _init_logging() -> None:
    """Configure the root logger once."""
    global _initialized
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    handler.addFilter(RedactingFilter())
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    root.addHandler(handler)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A configured logging.Logger.
    """
    _init_logging()
    return logging.getLogger(name)
