# provisioning_app/utils/logging_config.py
"""
Application logging setup.

All models log through ``current_app.logger``; this module attaches the
console and (optionally) rotating file handlers to that logger.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FILE_NAME = "provisioning.log"

_HANDLER_MARKER = "_provisioning_handler"


def _resolve_level(value):
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _mark(handler):
    setattr(handler, _HANDLER_MARKER, True)
    return handler


def setup_logging(app):
    """
    Configure app.logger from LOG_LEVEL, ENABLE_CONSOLE_LOGGING, ENABLE_FILE_LOGGING and LOG_DIR.

    Safe to call more than once; handlers added by a previous call are replaced.
    """
    logger = app.logger
    level = _resolve_level(app.config.get("LOG_LEVEL"))
    formatter = logging.Formatter(LOG_FORMAT)

    for handler in list(logger.handlers):
        if handler is default_handler or getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            if handler is not default_handler:
                handler.close()

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = _mark(logging.StreamHandler())
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR") or "logs"
        os.makedirs(log_dir, exist_ok=True)
        file_handler = _mark(
            RotatingFileHandler(
                os.path.join(log_dir, LOG_FILE_NAME),
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    logger.setLevel(level)
    logger.debug(f"Logging configured at level {logging.getLevelName(level)}")
    return logger
