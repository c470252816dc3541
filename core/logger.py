# core/logger.py
"""
Logging setup for homefoods.

The root logger is configured once, on first use, with a stdout handler and
the level named by LOG_LEVEL in the environment (or .env). Modules ask for
their own logger:

    logger = get_logger(__name__)
"""
import logging
import sys

from core.config import LOG_LEVEL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_initialized = False


def _init_logging():
    """Configure the root logger once."""
    global _initialized
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root = logging.getLogger()
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    root.addHandler(handler)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger (use `get_logger(__name__)`)."""
    _init_logging()
    return logging.getLogger(name)
