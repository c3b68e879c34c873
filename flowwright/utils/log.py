"""Logging setup: console plus a size-rotated log file."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DEFAULT_LOG_FILE = "flowwright.log"


def setup_logging(level: str = "info", log_file: str | None = DEFAULT_LOG_FILE) -> logging.Logger:
    """
    Configure the ``flowwright`` logger hierarchy.

    Safe to call more than once: existing handlers are replaced.
    """
    root = logging.getLogger("flowwright")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(file_handler)

    root.propagate = False
    return root
