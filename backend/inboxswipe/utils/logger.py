"""
Logging setup for InboxSwipe.

Every module gets its logger through get_logger(__name__); setup_logging()
is called once from the FastAPI entry point.
"""
import logging
import sys
from typing import Optional

from inboxswipe.config import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "inboxswipe"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the application logger.

    Args:
        level: Optional level override (DEBUG, INFO, ...). Falls back to
            settings.log_level, or DEBUG when debug mode is on.
    """
    settings = get_settings()
    resolved = level or settings.log_level or ("DEBUG" if settings.debug else "INFO")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolved.upper())

    # Avoid duplicate handlers on reload
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(resolved.upper())


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (handlers are configured by setup_logging)."""
    return logging.getLogger(name)
