"""Logging setup for the relay process.

Everything logs under the ``synapsed`` logger and module loggers are its
children. aiohttp's access log writes through the same handlers. botocore
and urllib3 are held at WARNING so AWS client chatter does not bury request
outcomes.
"""

import logging
from pathlib import Path

from synapsed.config import Config

LOGGER_NAME = "synapsed"
ACCESS_LOGGER_NAME = "aiohttp.access"

# Format: 2025-01-27 10:30:45 [INFO] message
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ("boto3", "botocore", "urllib3")

_logger: logging.Logger | None = None


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(config: Config) -> list[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: Config) -> logging.Logger:
    """Configure relay logging once per process.

    Args:
        config: Supplies ``log_level`` and the optional ``log_file``.

    Returns:
        The ``synapsed`` logger. Later calls return it unchanged.
    """
    global _logger

    if _logger is not None:
        return _logger

    handlers = _build_handlers(config)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_parse_level(config.log_level))
    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False

    access = logging.getLogger(ACCESS_LOGGER_NAME)
    access.setLevel(logging.INFO)
    access.handlers.clear()
    for handler in handlers:
        access.addHandler(handler)
    access.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger = logger
    return logger


def reset_logging() -> None:
    """Undo setup_logging. Used for testing."""
    global _logger
    if _logger is None:
        return

    access = logging.getLogger(ACCESS_LOGGER_NAME)
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()
    _logger.propagate = True
    _logger.setLevel(logging.NOTSET)
    access.handlers.clear()
    access.propagate = True
    access.setLevel(logging.NOTSET)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)

    _logger = None
