"""
Package loggers.

Every module logger is a child of the ``gpu_box_blur`` logger, which owns
the one stdout handler. The level starts from settings and can be changed
at runtime with ``set_level`` (the command line's ``--verbose``).
"""

import logging
import sys
from gpu_box_blur.config import settings

PACKAGE_LOGGER = "gpu_box_blur"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _parse_level(level) -> int:
    """Level name or number to a logging constant; unknown names give INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_parse_level(settings.LOGGING_LEVEL))
        logger.propagate = False
    return logger


def get_logger(name):
    """
    Gets the logger for a module.

    Package modules pass ``__name__`` and get ``gpu_box_blur.*`` loggers;
    any other name (``__main__`` under ``python -m``) is nested under the
    package logger so it shares its handler and level.
    """
    package = _package_logger()
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return package.getChild(name)


def set_level(level) -> None:
    """Set the level of every package logger."""
    _package_logger().setLevel(_parse_level(level))
