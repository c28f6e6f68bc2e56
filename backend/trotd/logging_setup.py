"""Logging configuration (loguru)."""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "WARNING") -> None:
    """Replace loguru's default handler with a stderr sink at ``level``.

    The CLI runs at login, so anything below WARNING stays quiet unless asked for.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
