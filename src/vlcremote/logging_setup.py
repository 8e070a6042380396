"""Logging configuration for vlcremote."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from platformdirs import user_log_dir

from vlcremote.config import Settings

LOGGER_NAME = "vlcremote"


def default_log_file() -> Path:
    log_dir = Path(user_log_dir("vlcremote"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "vlcremote.log"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the ``vlcremote`` logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path; the file always receives DEBUG records.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    console_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger.setLevel(logging.DEBUG if log_file else console_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_settings(settings: Settings) -> logging.Logger:
    return setup_logging(settings.log_level, Path(settings.log_file).expanduser() if settings.log_file else None)
