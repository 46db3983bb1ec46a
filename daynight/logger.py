"""
Centralized logging configuration for the day-and-night companion.

Routine progress (ready signals, received sun times, acknowledgments) goes to
stdout; failed stages (WARNING and ERROR) go to stderr.
Log level is configurable via LOG_LEVEL environment variable.
"""

import logging
import sys
from typing import TextIO

from daynight.config import LOG_LEVEL

LOGGER_NAME = "daynight"

# Format: "2025-01-15 14:30:45 - daynight - INFO - Sunrise/sunset info sent to Pebble successfully"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LevelRangeFilter(logging.Filter):
    """Pass only records whose level lies in [level_min, level_max]."""

    def __init__(self, level_min: int, level_max: int):
        super().__init__()
        self.level_min = level_min
        self.level_max = level_max

    def filter(self, record: logging.LogRecord) -> bool:
        return self.level_min <= record.levelno <= self.level_max


def setup_logging(
    level: str = LOG_LEVEL,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the companion logger.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        out: Stream for DEBUG/INFO records (default: sys.stdout)
        err: Stream for WARNING/ERROR records (default: sys.stderr)

    Returns:
        Logger instance for daynight
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Sequences log once per stage; never duplicate through the root logger
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    progress_handler = logging.StreamHandler(out or sys.stdout)
    progress_handler.setLevel(logging.DEBUG)
    progress_handler.addFilter(LevelRangeFilter(logging.DEBUG, logging.INFO))
    progress_handler.setFormatter(formatter)

    failure_handler = logging.StreamHandler(err or sys.stderr)
    failure_handler.setLevel(logging.WARNING)
    failure_handler.setFormatter(formatter)

    logger.addHandler(progress_handler)
    logger.addHandler(failure_handler)

    return logger


# Global logger instance
logger = setup_logging()
