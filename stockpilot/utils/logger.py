"""Logging configuration for the application."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import get_config


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Setup a logger with console and optional file handlers.

    Args:
        name: Logger name
        log_file: Optional log file path
        level: Optional log level (overrides config)

    Returns:
        Configured logger instance
    """
    config = get_config()

    logger = logging.getLogger(name)
    log_level = level or config.logging.level
    logger.setLevel(getattr(logging, log_level.upper()))

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(config.logging.format)

    # Console goes to stderr so CLI tables on stdout stay clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler is skipped in production (stdout is collected by the platform)
    if log_file and config.env.log_to_file and not config.is_production:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_api_logger() -> logging.Logger:
    """Get logger for API operations."""
    config = get_config()
    return setup_logger("stockpilot.api", config.logging.files.api)


def get_submit_logger() -> logging.Logger:
    """Get logger for sale, restock and return submissions."""
    config = get_config()
    return setup_logger("stockpilot.submit", config.logging.files.submit)


def get_catalog_logger() -> logging.Logger:
    """Get logger for catalog fetches and the active store."""
    return setup_logger("stockpilot.catalog")


def get_error_logger() -> logging.Logger:
    """Get logger for error tracking."""
    config = get_config()
    return setup_logger("stockpilot.error", config.logging.files.error, "ERROR")


def get_scheduler_logger() -> logging.Logger:
    """Get logger for APScheduler internals.

    Without this, exceptions raised inside scheduled jobs only show up
    as a one-line warning from APScheduler's own logger.
    """
    return setup_logger("apscheduler")
