"""
Logging utilities.
"""

import logging
import sys


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger with a stderr handler attached
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def set_log_level(level: int | str) -> None:
    """
    Set the log level for every pyrag logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or its int value
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logging.getLogger('pyrag').setLevel(level)
