"""Logging for the dashboard core.

Every module logs through a child of the ``smart_city_dashboard`` logger
(see ``get_logger``). ``setup_logging`` attaches the handlers once per
session, from ``Settings.log_level`` and ``Settings.log_file``.
"""
import logging
import sys
from pathlib import Path
from typing import Optional, Union

from smart_city_dashboard.exceptions import ConfigurationError


ROOT_LOGGER = "smart_city_dashboard"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs each provider request and APScheduler each timer tick at INFO
CHATTY_LIBRARIES = ("httpx", "httpcore", "apscheduler")


def parse_log_level(log_level: Union[str, int]) -> int:
    """
    Resolve a level name such as ``"warning"`` to its ``logging`` constant.

    Raises:
        ConfigurationError: For names outside LOG_LEVELS
    """
    if isinstance(log_level, int):
        return log_level

    name = str(log_level).strip().upper()
    if name not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level: {log_level!r}",
            details={"allowed": list(LOG_LEVELS)}
        )
    return logging.getLevelName(name)


def setup_logging(
    log_level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Configure the package logger for a dashboard session.

    Calling it again replaces the previous handlers, so a new session never
    logs twice. Below DEBUG, the HTTP client and scheduler libraries are held
    at WARNING.

    Args:
        log_level: Level name from LOG_LEVELS, or a ``logging`` constant
        log_file: Optional file receiving the same records as stdout

    Returns:
        The ``smart_city_dashboard`` logger
    """
    level = parse_log_level(log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logger = logging.getLogger(ROOT_LOGGER)
    for old in logger.handlers[:]:
        logger.removeHandler(old)
        old.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. ``get_logger("ingestion.providers")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
