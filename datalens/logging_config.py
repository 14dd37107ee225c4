"""Logging setup for the datalens command-line tool."""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "WARNING", log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure the ``datalens`` logger with a single stderr handler.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Format string for log records.

    Returns:
        The configured ``datalens`` logger.

    Raises:
        ValueError: If *log_level* is not a known level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: '{log_level}'")

    logger = logging.getLogger("datalens")
    logger.setLevel(level)

    # Replace handlers so repeated calls do not duplicate output
    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
