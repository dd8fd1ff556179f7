"""Logging setup for Ralph runs.

Records go to a daily-rotated file under ``~/.ralph/logs``; the terminal is
reserved for display events.
"""

import logging
import logging.handlers
import secrets
import sys
import time
from pathlib import Path

from ralph_loop.constants import LOG_DIR, LOG_FILE_NAME, RETENTION_DAYS

LOG_FORMAT = "%(asctime)s - %(session_id)s - %(name)s - %(levelname)s - %(message)s"

# "trace" and "warn" are accepted in config for compatibility
LEVEL_NAMES = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class SessionIdFilter(logging.Filter):
    """Stamp every record with the run's session id."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id
        return True


def new_session_id() -> str:
    """Six hex characters identifying one ``ralph run`` invocation."""
    return secrets.token_hex(3)


def resolve_level(level: str) -> int:
    return LEVEL_NAMES.get(level.lower(), logging.INFO)


def setup_logging(level: str, session_id: str, log_dir: Path = LOG_DIR) -> logging.Logger:
    """Configure the ``ralph_loop`` logger with a rotating file handler.

    If the log directory cannot be created the run continues without file
    logging and a warning is printed to stderr.
    """
    logger = logging.getLogger("ralph_loop")
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.TimedRotatingFileHandler(
            log_dir / LOG_FILE_NAME, when="midnight", backupCount=RETENTION_DAYS, encoding="utf-8"
        )
    except OSError as e:
        print(f"Warning: file logging disabled ({log_dir}: {e})", file=sys.stderr)
        logger.addHandler(logging.NullHandler())
        return logger

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(SessionIdFilter(session_id))
    logger.addHandler(handler)
    logger.info(f"session_start session_id={session_id}")
    return logger


def cleanup_old_logs(log_dir: Path = LOG_DIR, retention_days: int = RETENTION_DAYS) -> int:
    """Delete log files last modified more than ``retention_days`` ago."""
    if not log_dir.is_dir():
        return 0

    cutoff = time.time() - retention_days * 24 * 60 * 60
    removed = 0
    for path in log_dir.iterdir():
        if not path.is_file() or not path.name.startswith(LOG_FILE_NAME):
            continue
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError as e:
            logging.getLogger(__name__).warning(f"Failed to remove old log {path}: {e}")
    return removed
