"""
Shared logger utility for the reconciliation engine.
Provides a consistent logger configuration for entry points and demos.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str | None = None, level: str | int = logging.INFO) -> logging.Logger:
    """
    Returns a logger with the specified name, configured with the standard format.
    A handler is attached only once per logger; the level is updated on every call.
    If no name is provided, returns the root logger.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    return logger
