"""Log setup for the store and its entry point.

Two output styles: ``dev`` writes one readable line per record, and
``structured`` writes one JSON object per line for log shippers.
"""

import json
import logging
import sys
from typing import Literal

LOGGER_PREFIX = "gatekeeper"
READABLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DRIVER_LOGGERS = ("asyncpg", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _make_handler(format_type: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(READABLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """Replace the root handlers with one stdout handler.

    Args:
        level: Name of the root level, case-insensitive
        format_type: ``structured`` for JSON lines, ``dev`` for plain text
    """
    numeric_level = getattr(logging, level.upper())
    logging.root.handlers = [_make_handler(format_type)]
    logging.root.setLevel(numeric_level)

    # Driver chatter only shows up when debugging
    driver_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(driver_level)

    get_logger("logging").debug(f"Logging ready (level={level}, format={format_type})")


def get_logger(name: str) -> logging.Logger:
    """Return the ``gatekeeper.<name>`` logger."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
