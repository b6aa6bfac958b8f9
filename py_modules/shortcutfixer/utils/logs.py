"""Log file setup for the shortcutfixer logger tree."""

import logging
import logging.handlers
import os
from typing import Optional

from .paths import LOG_FILE

ROOT_LOGGER_NAME = "shortcutfixer"


def setup_logging(log_file: Optional[str] = LOG_FILE, level: int = logging.DEBUG) -> logging.Logger:
    """
    Attach a rotating file handler and a warning-level console handler to the
    package logger. Safe to call more than once.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        logger.addHandler(console_handler)

    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file), exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create log directory for {log_file}: {e}")
            return logger
        already = any(
            isinstance(h, logging.handlers.RotatingFileHandler)
            and getattr(h, 'baseFilename', None) == os.path.abspath(log_file)
            for h in logger.handlers
        )
        if not already:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, mode='a', encoding='utf-8', maxBytes=1024 * 1024, backupCount=5
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            logger.addHandler(file_handler)

    return logger
