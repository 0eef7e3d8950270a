"""
Logging configuration for the Market Terminal backend.

One console handler on the root logger; the HTTP client libraries are held
back to their own level because they log every upstream request.
"""
import logging
import sys
from typing import Optional
from .config import settings

# Libraries that log each request/connection at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Override log level. Defaults to settings.log_level, then to
            DEBUG if settings.debug, else INFO.
    """
    if level is None:
        level = settings.log_level or ("DEBUG" if settings.debug else "INFO")
    level = level.upper()

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(settings.upstream_log_level.upper())


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Example:
        from .logging_config import get_logger
        logger = get_logger(__name__)
        logger.info(f"Fetched {count} quotes")
    """
    return logging.getLogger(name)
