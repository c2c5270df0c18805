"""
Logging setup for erp_sync.

All loggers live under the ``erp_sync`` hierarchy. ``setup_logging`` attaches:

- a console handler on stderr (colored on terminals that support it),
- a daily file handler ``erp_sync_YYYYMMDD.log`` that always records DEBUG.

Records may carry structured fields passed through ``extra=`` (the batch
runner attaches ``synchronizer``, ``row_number`` and ``row_identity`` to every
failed row). The file handler writes them after the message as
``key=value`` pairs, so failed rows can be grepped for by synchronizer or row.

Environment:
    ERP_SYNC_LOG_LEVEL  console level name (default INFO)
    ERP_SYNC_DEBUG      1/true/yes forces DEBUG
    ERP_SYNC_LOG_FILE   log file path, or none/disabled to turn file logging off
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "ERP_SYNC_LOG_LEVEL"
ENV_DEBUG = "ERP_SYNC_DEBUG"
ENV_LOG_FILE = "ERP_SYNC_LOG_FILE"

ROOT_LOGGER_NAME = "erp_sync"
LOG_FILE_PREFIX = "erp_sync_"

# utils -> erp_sync -> project root
PROJECT_LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

logger = logging.getLogger(__name__)

# Log directory chosen by the last setup_logging() call
_configured_log_dir: Optional[Path] = None


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the structured fields attached to a record via ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
    }


class ContextFormatter(logging.Formatter):
    """
    Formatter appending a record's ``extra`` fields to the formatted line.

    A failed row from the batch runner ends with::

        | synchronizer=companies row_number=3 row_identity='ID_FIRMY=7'

    Records without extras are formatted unchanged.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if not extras:
            return line

        context = " ".join(
            f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}"
            for key, value in extras.items()
        )
        # Keep the context on the message line, above any traceback
        head, sep, rest = line.partition("\n")
        return f"{head} | {context}{sep}{rest}"


class ColoredFormatter(logging.Formatter):
    """Console formatter coloring level and message by severity on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._supports_color()

    @staticmethod
    def _supports_color() -> bool:
        if not hasattr(sys.stderr, "isatty") or not sys.stderr.isatty():
            return False
        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False
        return os.environ.get("TERM", "") != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)

        # Color a copy; the file handler formats the same record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS[record.levelname]
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """Console level from ERP_SYNC_DEBUG / ERP_SYNC_LOG_LEVEL (default INFO)."""
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    return _LEVELS.get(os.environ.get(ENV_LOG_LEVEL, "INFO").upper(), logging.INFO)


def _daily_log_name() -> str:
    return f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"


def get_log_file_path() -> Optional[Path]:
    """
    Log file from ERP_SYNC_LOG_FILE, else today's file in the project logs dir.

    Returns None when file logging is disabled through the environment.
    """
    log_file = os.environ.get(ENV_LOG_FILE)
    if log_file is None:
        return PROJECT_LOG_DIR / _daily_log_name()
    if log_file.lower() in ("none", "disabled", ""):
        return None
    return Path(log_file)


def _file_handler(file_path: Path) -> logging.FileHandler:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(file_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(ContextFormatter(VERBOSE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the ``erp_sync`` logger for a CLI run.

    Args:
        level: Console level; read from the environment when None
        verbose: Force DEBUG and use the verbose console format
        log_dir: Directory for the daily log file (config ``log_dir``)
        log_file: Explicit log file, takes precedence over log_dir
        enable_file_logging: Attach the file handler at all
        use_colors: Color console output when the terminal supports it

    Returns:
        The ``erp_sync`` logger

    Calling it again replaces the previously attached handlers.
    """
    global _configured_log_dir

    if level is None:
        level = get_log_level_from_env()
    if verbose:
        level = logging.DEBUG

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(level)
    root.propagate = False

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(console_format, DATE_FORMAT)
        if use_colors
        else logging.Formatter(console_format, DATE_FORMAT)
    )
    root.addHandler(console)

    if enable_file_logging:
        file_path = log_file or (log_dir / _daily_log_name() if log_dir else None)
        if file_path is None:
            file_path = get_log_file_path()
        if file_path is not None:
            try:
                root.addHandler(_file_handler(file_path))
                root.debug(f"Log file: {file_path}")
            except OSError as e:
                root.warning(f"Could not create log file {file_path}: {e}")

    if log_dir:
        _configured_log_dir = log_dir
    elif log_file:
        _configured_log_dir = log_file.parent
    else:
        _configured_log_dir = None

    return root


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the ``keep_count`` most recent daily log files.

    Args:
        log_dir: Directory to clean; defaults to the directory chosen by the
                 last setup_logging() call, then the project logs dir
        keep_count: Files to keep; 0 disables cleanup

    Returns:
        Number of files deleted
    """
    if keep_count <= 0:
        return 0

    logs_dir = log_dir or _configured_log_dir or PROJECT_LOG_DIR
    if not logs_dir.exists():
        return 0

    daily_logs = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for old_log in daily_logs[keep_count:]:
        try:
            old_log.unlink()
        except OSError as e:
            # Another process may still hold the file open
            logger.debug(f"Could not delete old log {old_log}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``erp_sync`` hierarchy."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    "CONSOLE_FORMAT",
    "DATE_FORMAT",
    "DEFAULT_FORMAT",
    "PROJECT_LOG_DIR",
    "VERBOSE_FORMAT",
    "ColoredFormatter",
    "ContextFormatter",
    "cleanup_old_logs",
    "get_log_file_path",
    "get_log_level_from_env",
    "get_logger",
    "record_extras",
    "setup_logging",
]
