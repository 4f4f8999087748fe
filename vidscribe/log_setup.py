"""Logging configuration for VidScribe."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional, TextIO

from .exceptions import FileSystemError
from .utils import ensure_dir_exists

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# HTTP clients log every request at DEBUG; keyring logs backend probing
QUIET_LOGGERS = ("urllib3", "requests", "httpx", "httpcore", "keyring")


def _reset_root(root: logging.Logger) -> None:
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


def _quiet(names: Iterable[str]) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_file: str = "vidscribe.log",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = 10 * 1024 * 1024, # 10 MB
    backup_count: int = 5,
    console_stream: Optional[TextIO] = None,
) -> Optional[str]:
    """
    Configures the root logger for the application.

    The console handler writes to stderr so progress bars and command output
    on stdout stay readable. When ``log_dir`` is given, a rotating file handler
    is added that records everything from DEBUG up regardless of the console
    level. Calling this again replaces the previous handlers, which lets the
    CLI log to the console before the config file (and its log_dir) is known.

    Args:
        log_level: Minimum level shown on the console.
        log_dir: Directory for the log file; None disables file logging.
        log_file: The name of the log file.
        log_format: The format string for log messages.
        date_format: The format string for timestamps in logs.
        max_bytes: Maximum size of a log file before rotation.
        backup_count: Number of backup log files to keep.
        console_stream: Stream used by the console handler; defaults to stderr.

    Returns:
        Path of the active log file, or None when logging to the console only.
    """
    root = logging.getLogger()
    _reset_root(root)
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console = logging.StreamHandler(console_stream or sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(log_level)
    root.addHandler(console)
    root.setLevel(log_level)
    _quiet(QUIET_LOGGERS)

    if log_dir is None:
        return None

    log_path = os.path.join(log_dir, log_file)
    try:
        ensure_dir_exists(log_dir)
        file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
    except (OSError, FileSystemError) as e:
        # Console logging still works; keep going without the file
        root.error(f"Failed to set up file logging at {log_path}: {e}")
        return None

    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)
    root.addHandler(file_handler)
    root.setLevel(min(log_level, logging.DEBUG))
    root.debug(f"Logging initialized. Log file: {log_path}")
    return log_path


def setup_logging_from_config(config: dict, log_level: int = logging.INFO) -> Optional[str]:
    """Routes file logging to the ``log_dir``/``log_file`` config values."""
    return setup_logging(
        log_level=log_level,
        log_dir=config.get('log_dir', 'logs'),
        log_file=config.get('log_file', 'vidscribe.log'),
    )
