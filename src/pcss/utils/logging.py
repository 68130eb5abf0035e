"""Logging utilities for pcss."""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "pcss"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    level: str = "INFO", log_file: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """Route pcss log records to stderr and, optionally, to a file.

    Progress goes to stderr so that command output on stdout stays clean.
    The file, when given, receives every record down to DEBUG regardless of
    ``level``.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file, created with its parent directories

    Returns:
        The ``pcss`` logger
    """
    console_level = logging.getLevelName(level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = False

    handler = RichHandler(
        console=Console(stderr=True), show_time=False, show_path=False, markup=False
    )
    handler.setLevel(console_level)
    logger.addHandler(handler)

    if log_file:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if log_file else console_level)
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
