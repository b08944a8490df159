"""Log utilities."""

from __future__ import annotations

import logging
import os

from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Return a logger that writes through a single RichHandler.

    The level comes from the ``LOG_LEVEL`` environment variable (default
    ``INFO``) and propagation to ancestor loggers is disabled so records are
    not emitted twice when the host application configures the root logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    logger.handlers = [RichHandler(rich_tracebacks=False, show_path=False)]
    logger.propagate = False
    return logger
