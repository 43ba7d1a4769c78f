"""
utils/logger.py
---------------
Logging setup shared by the bot, its jobs and its tests.
Modules call `get_logger(__name__)`; the first call configures stdout output.
"""

import logging
import sys

from config import LOG_LEVEL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs every getUpdates poll, apscheduler every reminder job run.
_NOISY_LOGGERS = ("httpx", "apscheduler")

_configured = False


def configure_logging(level: str = LOG_LEVEL) -> None:
    """
    Attach the stdout handler to the root logger.

    Safe to call more than once; only the first call adds a handler, later
    calls just change the level.
    """
    global _configured
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root.addHandler(handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for `name`, configuring output on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
