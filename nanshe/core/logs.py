"""
Loguru sink configuration for the CLI entry point.
"""

from __future__ import annotations

import sys

from loguru import logger

from config import get_settings


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Replace the default sink with stderr (and optionally a rotating file)."""
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file if log_file is not None else settings.log_file

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="5 MB", retention=3)
