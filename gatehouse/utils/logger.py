# gatehouse/utils/logger.py
"""
Logging for the whole backend, configured once from Settings:
console output plus a rotating file under LOG_DIR.
Modules call get_logger(__name__) at import time.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from gatehouse.config import settings

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def log_path() -> str:
    log_dir = settings.LOG_DIR
    if not os.path.isabs(log_dir):
        log_dir = os.path.join(REPO_ROOT, log_dir)
    return os.path.join(log_dir, settings.LOG_FILE)


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    fmt = logging.Formatter(fmt=FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    path = log_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    console = logging.StreamHandler()
    console.setFormatter(fmt)

    file_handler = RotatingFileHandler(
        filename=path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(file_handler)

    # Engine chatter only when SQL_ECHO is on
    if not settings.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Named logger; the root handlers are installed on first use."""
    _configure_root_logger()
    return logging.getLogger(name)
