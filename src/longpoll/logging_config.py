"""Logging setup for the longpoll package and its CLI."""

import logging
import sys
from typing import Optional

LOGGER_NAME = "longpoll"

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def verbosity_level(verbose: bool = False, quiet: bool = False) -> str:
    """Map CLI verbosity flags to a level name; verbose wins over quiet."""
    if verbose:
        return "DEBUG"
    if quiet:
        return "ERROR"
    return "WARNING"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Configure the "longpoll" logger.

    Console output goes to stderr so it never mixes with response bodies
    printed on stdout. The file handler, when requested, uses a
    timestamped format since session logs are read after the fact.

    Calling this again without force only adjusts levels of the existing
    handlers.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path that also receives log records
        format_string: Format used for every handler instead of the defaults
        force: Replace handlers installed by an earlier call

    Returns:
        The configured logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.propagate = False

    if logger.handlers and not force:
        for existing in logger.handlers:
            existing.setLevel(numeric_level)
        return logger

    logger.handlers.clear()
    logger.addHandler(
        _handler(logging.StreamHandler(sys.stderr), numeric_level, format_string or CONSOLE_FORMAT)
    )
    if log_file:
        logger.addHandler(
            _handler(logging.FileHandler(log_file), numeric_level, format_string or FILE_FORMAT)
        )

    return logger
