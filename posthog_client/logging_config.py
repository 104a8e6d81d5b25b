"""
Opt-in log output for the PostHog client.

Library modules log through ``logging.getLogger(__name__)`` and the package
logger carries a ``NullHandler``, so nothing is printed unless the host
application configures logging itself or calls :func:`setup_logging`.

Environment defaults:
- ``POSTHOG_LOG_LEVEL``: console level, INFO when unset
- ``POSTHOG_LOG_FORMAT``: ``simple``, ``detailed`` (default) or ``json``
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

PACKAGE_LOGGER = "posthog_client"

DEFAULT_LEVEL = os.getenv("POSTHOG_LOG_LEVEL", "INFO").upper()
DEFAULT_FORMAT_NAME = os.getenv("POSTHOG_LOG_FORMAT", "detailed")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS: Dict[str, str] = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

# The HTTP stack logs every request at INFO/DEBUG
MODULE_LOG_LEVELS = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


def _handler(handler: logging.Handler, level: Union[int, str], formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _clear_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Route the ``posthog_client`` logger tree to stderr and, optionally, a file.

    The root logger is never touched. Calling this again replaces the handlers
    installed by the previous call.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: One of ``simple``, ``detailed`` or ``json``; unknown names fall back to ``detailed``
        log_file: Path of a file that receives every record, DEBUG included

    Returns:
        The package logger
    """
    level = (log_level or DEFAULT_LEVEL).upper()
    format_name = log_format or DEFAULT_FORMAT_NAME
    formatter = logging.Formatter(FORMATS.get(format_name, DETAILED_FORMAT), datefmt=DATE_FORMAT)

    logger = logging.getLogger(PACKAGE_LOGGER)
    _clear_handlers(logger)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(_handler(logging.StreamHandler(), level, formatter))

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(path), logging.DEBUG, formatter))

    for name, name_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(name_level)

    logger.debug("Logging configured: level=%s, format=%s, file=%s", level, format_name, log_file)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; kept for symmetry with :func:`setup_logging`."""
    return logging.getLogger(name)
