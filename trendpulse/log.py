"""Logging for the engine and its source adapters.

Everything logs under one ``trendpulse`` logger. Source adapters get a child
(``trendpulse.reddit``, ``trendpulse.x`` ...) so console lines carry the
source name and the file log can be grepped per source. Handlers live only on
the parent; children propagate.
"""

import logging
import sys
from datetime import datetime

from .config import LOGS_DIR

LOGGER_NAME = "trendpulse"

_logger = None


class _ConsoleFormatter(logging.Formatter):
    """``  message`` for the engine, ``  reddit: message`` for a source."""

    def format(self, record):
        message = super().format(record)
        if record.name.startswith(LOGGER_NAME + "."):
            component = record.name[len(LOGGER_NAME) + 1:]
            return f"  {component}: {message}"
        return f"  {message}"


def _configure() -> logging.Logger:
    global _logger
    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on re-import
    if _logger.handlers:
        return _logger

    # Console on stderr so --json output stays clean; INFO unless --verbose
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO)
    console.setFormatter(_ConsoleFormatter("%(message)s"))
    _logger.addHandler(console)

    # One file per day, always DEBUG; fetches run on worker threads
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOGS_DIR / f"trendpulse_{datetime.now():%Y%m%d}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)-24s %(threadName)s %(message)s",
        datefmt="%H:%M:%S",
    ))
    _logger.addHandler(file_handler)
    return _logger


def get_logger(component: str = None) -> logging.Logger:
    """The ``trendpulse`` logger, or its child for ``component`` (a source id)."""
    root = _logger if _logger is not None else _configure()
    if component:
        return root.getChild(component)
    return root


def set_verbose(verbose: bool = True):
    """Switch the console handler between INFO and DEBUG."""
    for handler in get_logger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.DEBUG if verbose else logging.INFO)


def log(msg: str):
    get_logger().info(msg)
