"""Logging helpers shared by every module."""

import logging
import sys
from typing import Optional

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Return a configured logger.

    Args:
        name: Logger name, usually ``__name__``
        level: Optional level name overriding the default (INFO)

    Returns:
        logging.Logger: Logger writing to stderr
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    if level:
        logger.setLevel(level.upper())
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)

    return logger
