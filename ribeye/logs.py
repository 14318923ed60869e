"""Logging configuration for the command line entrypoint."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def init_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package logger with a console handler."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("ribeye")
    logger.setLevel(log_level)
    logger.propagate = False  # avoid duplicate logs if root has handlers

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
