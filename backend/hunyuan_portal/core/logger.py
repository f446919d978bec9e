"""
Custom logging configuration.

Responsibilities:
- Setup structured logging
- Configure log levels and formats
- Output logs to console and (optionally) file
"""

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "hunyuan_portal"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(LOGGER_NAME)


def setup_logger(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configures the application logger."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger of the application logger, e.g. get_logger(__name__)."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logger.getChild(name)
