"""Logging configuration for the automation engine.

Application loggers follow the configured level; third-party libraries are
held at WARNING so SQL echo and pool chatter do not drown engine output.
"""

import logging
import sys
from typing import Literal

from settings import get_settings

# Noisy third-party loggers
NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "sqlalchemy.orm",
]

# Application logger namespaces (top-level packages)
APP_LOGGERS = ["engine", "db", "validations", "registry", "main"]


def suppress_noisy_loggers() -> None:
    """Hold third-party loggers at WARNING and drop their own handlers."""
    for logger_name in NOISY_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.WARNING)
        logger.handlers.clear()


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
) -> None:
    """Configure application logging.

    Sets up:
    - Application logs at the configured level
    - Third-party library logs suppressed to WARNING+
    - A single console handler on stderr

    Args:
        level: Override log level (defaults to settings.log_level)
    """
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    for app_logger in APP_LOGGERS:
        logging.getLogger(app_logger).setLevel(getattr(logging, log_level))

    suppress_noisy_loggers()
