"""Logging configuration for hv.

One rotating log file (`hv.log` in DATA_DIR unless `[logging] file` says
otherwise) that records everything at DEBUG, plus a Rich console on stderr at
the configured level. stdout stays free for CLI output.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

DEFAULT_LOG_NAME = "hv.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Chatty third-party loggers, capped regardless of the configured level
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "asyncio": logging.WARNING,
}

_logging_initialized = False


def _get_data_dir() -> Path:
    """Return the data directory (same as config.DATA_DIR without circular import)."""
    env = os.environ.get("DATA_DIR")
    if env:
        return Path(env)
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> Path:
    """Attach the file and console handlers to the root logger, once.

    Returns the log file path. Unknown level names fall back to INFO with a
    warning.
    """
    global _logging_initialized

    log_file = log_file or _get_data_dir() / DEFAULT_LOG_NAME
    if _logging_initialized:
        return log_file

    level_name = log_level.strip().upper()
    numeric_level = logging.getLevelName(level_name)
    unknown_level = not isinstance(numeric_level, int)
    if unknown_level:
        numeric_level = logging.INFO

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console = Console(theme=Theme({"logging.level.info": "bold magenta"}), stderr=True)
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(numeric_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    _logging_initialized = True

    logger = get_logger(__name__)
    if unknown_level:
        logger.warning(f"Unknown log level {log_level!r}, using INFO")
    logger.debug(f"Logging to {log_file} (console level {logging.getLevelName(numeric_level)})")
    return log_file


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
