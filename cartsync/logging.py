"""
Logging setup for cartsync.

Every module does ``logger = get_logger(__name__)``. Guest session ids and
text that came back from the cart service pass through the sanitizers below
before they reach a log line.
"""

import logging
import os
import sys
from functools import cache

DETAILED_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SIMPLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that report every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "upstash_redis")

_CONTROL_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Attach a stdout handler to the root logger.

    Does nothing when the host application has set up logging already.
    ``level`` defaults to LOG_LEVEL and ``fmt`` to CARTSYNC_LOG_FORMAT
    ("detailed" or "simple").
    """
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    style = (fmt or os.environ.get("CARTSYNC_LOG_FORMAT", "detailed")).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(SIMPLE_FORMAT if style == "simple" else DETAILED_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _neutralize(value: object) -> str:
    """Escape CR/LF/tab and drop NULs so a value cannot forge log lines (CWE-117)."""
    return str(value).translate(_CONTROL_CHARS)


def sanitize_id_for_logging(id_value: str | None, keep: int = 8) -> str:
    """
    Shorten a session id or token for logging.

    Only a prefix is logged: ``guest_17`` for ``guest_1700000000000_k3j2h1g0f``.
    """
    if not id_value:
        return "N/A"
    return _neutralize(id_value)[:keep]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape and truncate backend error text or coupon codes."""
    if not value:
        return "N/A"
    safe = _neutralize(value)
    return safe if len(safe) <= max_length else f"{safe[:max_length]}..."


__all__ = [
    "configure_logging",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
