"""
Logger utility for scriptdeck.

Implements rotating file logs in user space ({$SCRIPTDECK_HOME or ~/.scriptdeck}/logs/):
- scriptdeck.log: Main log with 5MB rotation, keeps 3 backups
- scriptdeck.errors.log: Errors only, 2MB rotation, keeps 2 backups
- scriptdeck.json: Structured JSON, 5MB rotation, keeps 2 backups

Handlers are attached once to the ``scriptdeck`` root logger; module
loggers propagate to it.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from scriptdeck.constants import LOG_DIR
from scriptdeck.utils.path_utils import ensure_directory, get_user_space

ROOT_LOGGER = "scriptdeck"


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "script", None):
            log_data["script"] = record.script

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _get_log_dir() -> Path:
    """Get log directory from user space."""
    return ensure_directory(get_user_space() / LOG_DIR)


def _configure(logger: logging.Logger) -> None:
    text_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler (stderr) - minimal output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(text_formatter)
    logger.addHandler(console_handler)

    try:
        log_dir = _get_log_dir()

        main_handler = RotatingFileHandler(
            log_dir / "scriptdeck.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        main_handler.setLevel(logging.DEBUG)
        main_handler.setFormatter(text_formatter)
        logger.addHandler(main_handler)

        error_handler = RotatingFileHandler(
            log_dir / "scriptdeck.errors.log",
            maxBytes=2 * 1024 * 1024,
            backupCount=2,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(text_formatter)
        logger.addHandler(error_handler)

        json_handler = RotatingFileHandler(
            log_dir / "scriptdeck.json",
            maxBytes=5 * 1024 * 1024,
            backupCount=2,
            encoding="utf-8",
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(JsonFormatter())
        logger.addHandler(json_handler)

    except OSError:
        pass  # File logging unavailable, console only


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger under the ``scriptdeck`` hierarchy.

    The root logger is configured on first use and logs to:
    - stderr (console) - warnings and errors only
    - {USER_SPACE}/logs/scriptdeck.log (rotating, 5MB max, 3 backups)
    - {USER_SPACE}/logs/scriptdeck.errors.log (errors only, 2MB max, 2 backups)
    - {USER_SPACE}/logs/scriptdeck.json (structured JSON, 5MB max, 2 backups)

    Args:
        name: Logger name (usually ``__name__``)
        level: Optional logging level

    Returns:
        Configured logger instance
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        _configure(root)
        root.setLevel(logging.DEBUG)

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)

    return logger
