"""Logging configuration for the relay.

This module provides centralized logging configuration using Loguru.
It sets up logging to the console and, optionally, to a rotating log file.
"""

import sys
from pathlib import Path

from loguru import logger

# Logs live in the user's home directory
LOG_DIR = Path.home() / ".socks5-relay" / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Replace the default handler with the relay's sinks.

    Args:
        debug: Log at DEBUG instead of INFO on the console
        log_file: Also write DEBUG logs here, rotated at 10 MB
    """
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if debug else "INFO",
        backtrace=debug,
        diagnose=debug,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=True,
            diagnose=False,
        )


__all__ = ["configure_logging", "logger", "LOG_DIR"]
