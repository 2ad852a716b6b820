"""
domlens/utils/logger.py

Logger factory shared by all domlens modules.
"""

import logging

from domlens.config import Config

PACKAGE_LOGGER_NAME = "domlens"

_configured = False


def _configure_package_logger() -> None:
    """Attach a single stream handler to the package logger (idempotent)."""
    global _configured
    if _configured:
        return

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(Config.LOG_LEVEL)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=Config.LOG_FORMAT, datefmt=Config.LOG_DATE_FORMAT))
        package_logger.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger that inherits the domlens package configuration.
    Args:
        name: The logger name, usually __name__ of the calling module.
    Returns:
        The configured logger.
    """
    _configure_package_logger()
    return logging.getLogger(name)
