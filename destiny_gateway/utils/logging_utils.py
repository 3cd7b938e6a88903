"""
Centralized logging utilities for consistent logging configuration across the gateway
"""

import logging
import sys
from typing import Optional, Union

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "websockets")


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a configured logger instance

    Args:
        name: Logger name (typically __name__ from calling module)
        level: Optional logging level (defaults to None to use root logger level)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def setup_logging(level: Union[int, str] = logging.INFO, format_string: Optional[str] = None):
    """
    Configure application-wide logging

    Logs always go to stderr: in stdio mode stdout carries protocol frames.

    Args:
        level: Logging level, as a number or a name such as "DEBUG"
        format_string: Custom format string (optional)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stderr,
        force=True  # Override any existing configuration
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
