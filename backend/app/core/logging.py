from __future__ import annotations

import sys

from loguru import logger

from .config import Settings


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr at the configured level."""

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, backtrace=settings.debug, diagnose=False)
