"""Logging setup.

Without a pager, records go to stderr. With a pager the terminal is in raw
mode and owned by the pager, so records are appended to its buffer instead.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "fwatch: %(levelname)s: %(message)s"
PAGER_LOG_FORMAT = "-- %(levelname)s: %(message)s --"
LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class PagerLogHandler(logging.Handler):
    """Append formatted records to a pager's line buffer."""

    def __init__(self, pager, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.pager = pager

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            for line in message.splitlines() or [""]:
                self.pager.append(line)
        except Exception:
            self.handleError(record)


def configure_logging(level: int = logging.INFO, pager=None) -> logging.Handler:
    """Install the single handler on the ``fwatch`` logger and return it."""
    logger = logging.getLogger("fwatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if pager is None:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = PagerLogHandler(pager)
        handler.setFormatter(logging.Formatter(PAGER_LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return handler
