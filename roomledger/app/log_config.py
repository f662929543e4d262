"""Logging setup for the roomledger logger tree."""

from __future__ import annotations

import logging

LOGGER_NAME = "roomledger"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Installs a single stream handler on the ``roomledger`` logger.

    Safe to call more than once (every create_app() call in the test suite
    does): an existing handler is reused and only the level is updated.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(getattr(h, "_roomledger", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._roomledger = True
        logger.addHandler(handler)

    return logger
