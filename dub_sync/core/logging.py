#!/usr/bin/env python3
"""
Logging configuration for the dub track sync estimator.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, TextIO

from .config import get_settings

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_FILE_BACKUPS = 5


def _file_handler(log_file: str, level: int, formatter: logging.Formatter) -> Optional[logging.Handler]:
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            str(log_path), maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
    except OSError as e:
        logging.warning(f"Could not setup file logging for {log_path}: {e}")
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the root logger for a CLI run or a batch.

    Console output goes to ``stream`` (stdout by default). Pass stderr when
    stdout carries machine-readable output such as JSON.
    """
    settings = get_settings()
    log_level = log_level or settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE
    log_format = log_format or settings.LOG_FORMAT

    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(log_format, datefmt="%H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = _file_handler(log_file, level, formatter)
        if file_handler is not None:
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {file_handler.baseFilename}")

    logging.debug(f"Logging configured - Level: {log_level}, File: {log_file or 'console only'}")
    return root_logger
