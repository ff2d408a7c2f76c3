"""Logging setup for the ``tierwise`` logger hierarchy."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("tierwise")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger
