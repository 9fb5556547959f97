"""Logging configuration for the TypeTalk backend."""

from __future__ import annotations

import logging
import os
import sys


def setup_logging(level: int | None = None) -> logging.Logger:
    """Configure and return the application logger."""
    logger = logging.getLogger("typetalk")

    if logger.handlers:
        return logger

    if level is None:
        level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = "typetalk") -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


# Initialize default logger
logger = setup_logging()
