"""
Logging configuration for NPS Sync.

Library modules log through the named ``nps_sync`` logger and never touch
handlers. The process that owns the session (``run_sync.py``) calls
``setup_logging()`` once to get console output plus rotating log files.
"""

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from typing import Optional

from nps_sync.core.config import settings

LOGGER_NAME = "nps_sync"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10_485_760  # 10MB
LOG_BACKUP_COUNT = 5

# Shared logger for every module of the package
logger = logging.getLogger(LOGGER_NAME)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_dir: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger for a runner process.

    Writes INFO and above to stdout, everything to ``nps_sync.log`` and
    errors to ``error.log`` under ``log_dir``. Handlers installed by an
    earlier call are replaced; handlers owned by the host are left alone.

    Args:
        log_dir: Directory for the log files, ``settings.LOG_DIR`` by default.
        level: Root level name, ``settings.LOG_LEVEL`` by default.

    Returns:
        The package logger.
    """
    logs_dir = Path(log_dir or settings.LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_nps_sync", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    handlers = [
        console_handler,
        _rotating_handler(logs_dir / "nps_sync.log", logging.DEBUG, formatter),
        _rotating_handler(logs_dir / "error.log", logging.ERROR, formatter),
    ]
    for handler in handlers:
        handler._nps_sync = True
        root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    for name in ("aiohttp", "sqlalchemy", "schedule"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging to {logs_dir.resolve()} at {logging.getLevelName(log_level)}")
    return logger
