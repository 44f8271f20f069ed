"""
Logging for gmusic

Two audiences read the output of the `gmusic` logger:

- the console shows what a user of an application cares about: warnings,
  errors and lines explicitly logged with `console_info`
- the rotating log file keeps the technical trail (requests, page counts,
  merge timings) at the configured level

Nothing is configured on import. Applications call setup_logging() or
configure_from_settings() once; libraries embedding gmusic can leave the
`gmusic` logger to their own logging setup.
"""

import functools
import logging
import logging.handlers
import re
import sys
import time
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Style
from tqdm import tqdm

from ..config.settings import Settings, get_settings


colorama.init()

PACKAGE_LOGGER = 'gmusic'

# Connection pool chatter is never interesting at our log levels
QUIET_LOGGERS = ('urllib3', 'urllib3.connectionpool', 'requests')

FILE_FORMAT = '%(asctime)s | %(name)-28s | %(levelname)-8s | %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_COLORS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}

SIZE_UNITS = {'B': 1, 'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}


class ConsoleMessageFilter(logging.Filter):
    """Let through warnings and records flagged with `console_output`"""

    def filter(self, record):
        return record.levelno >= logging.WARNING or getattr(record, 'console_output', False)


class ColoredFormatter(logging.Formatter):
    """Console formatter coloring the whole line by level"""

    def __init__(self, fmt: str = '%(message)s', use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not self.use_colors or color is None:
            return line
        return f"{color}{line}{Style.RESET_ALL}"


class TqdmHandler(logging.StreamHandler):
    """Console handler that prints above active tqdm bars instead of through them"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


def parse_size(size_str: str) -> int:
    """
    Convert a human size such as "10MB" or "512 kb" to bytes

    Raises:
        ValueError: If the text is not a number followed by B, KB, MB or GB
    """
    match = re.fullmatch(r'\s*(\d+(?:\.\d+)?)\s*([KMG]?B)\s*', size_str.upper())
    if match is None:
        raise ValueError(f"Invalid size format: {size_str!r}")
    return int(float(match.group(1)) * SIZE_UNITS[match.group(2)])


def _console_handler(colored: bool) -> logging.Handler:
    handler = TqdmHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.addFilter(ConsoleMessageFilter())
    handler.setFormatter(ColoredFormatter(use_colors=colored))
    return handler


def _file_handler(path: Path, level: int, max_size: str, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=parse_size(max_size), backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    colored_output: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3
) -> None:
    """
    (Re)configure the handlers of the `gmusic` logger

    Previously installed handlers are closed and replaced, so calling this
    twice does not duplicate output. The root logger is left alone.

    Args:
        level: Minimum level written to the log file
        log_file: Log file path, None for console only
        console_output: Install the user-facing console handler
        colored_output: Color console lines by level
        max_size: Rotation threshold of the log file, e.g. "10MB"
        backup_count: Rotated files kept next to the active one
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if console_output:
        package_logger.addHandler(_console_handler(colored_output))
    if log_file:
        file_level = logging.getLevelName(level.upper())
        if not isinstance(file_level, int):
            file_level = logging.INFO
        package_logger.addHandler(_file_handler(Path(log_file), file_level, max_size, backup_count))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.debug(f"Logging configured: level={level}, console={console_output}, file={log_file}")


def configure_from_settings(settings: Optional[Settings] = None) -> None:
    """
    Configure logging from the `logging` settings section

    A relative log file name is placed in the configuration directory.
    """
    settings = settings or get_settings()
    config = settings.logging

    log_file = None
    if config.file:
        log_file = Path(config.file)
        if not log_file.is_absolute():
            log_file = settings.get_config_directory() / log_file

    setup_logging(
        level=config.level,
        log_file=str(log_file) if log_file else None,
        console_output=config.console_output,
        colored_output=config.colored_output,
        max_size=config.max_size,
        backup_count=config.backup_count
    )


def get_current_log_file() -> Optional[Path]:
    """Path of the active log file, None when logging to console only"""
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            return Path(handler.baseFilename)
    return None


def get_logger(name: str) -> logging.Logger:
    """
    Module logger with a `console_info` shortcut

    `logger.console_info(msg)` logs at INFO and marks the record for the
    console, where plain INFO records are filtered out.
    """
    logger = logging.getLogger(name)
    logger.console_info = functools.partial(logger.info, extra={'console_output': True})
    return logger


class FetchProgress:
    """
    Progress of one multi-page fetch

    Logs start, per-page and end lines and, when enabled, shows a tqdm
    counter of fetched pages (the page total is unknown up front).
    """

    def __init__(self, logger: logging.Logger, operation: str, show_progress: bool = False):
        self.logger = logger
        self.operation = operation
        self.show_progress = show_progress
        self.started: Optional[float] = None
        self.pages = 0
        self._bar: Optional[tqdm] = None

    def start(self, message: Optional[str] = None) -> None:
        self.started = time.monotonic()
        self.logger.info(message or f"{self.operation}: started")

    def page(self, item_count: int) -> None:
        """Record one more fetched page and the running item count"""
        self.pages += 1
        self.logger.debug(f"{self.operation}: page {self.pages}, {item_count} items so far")
        if self.show_progress:
            if self._bar is None:
                self._bar = tqdm(desc=self.operation, unit="page", leave=False)
            self._bar.update(1)

    def done(self, message: Optional[str] = None) -> None:
        self.close()
        elapsed = time.monotonic() - self.started if self.started is not None else 0.0
        summary = f"{self.operation}: finished in {elapsed:.2f}s"
        self.logger.info(f"{summary} ({message})" if message else summary)

    def failed(self, message: str, error: Optional[Exception] = None) -> None:
        self.close()
        detail = f": {error}" if error else ""
        self.logger.warning(f"{self.operation}: {message}{detail}")

    def close(self) -> None:
        """Remove the page counter from the console; safe to call repeatedly"""
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def track_fetch(name: str, operation: str, show_progress: bool = False) -> FetchProgress:
    """FetchProgress logging to the module logger `name`"""
    return FetchProgress(get_logger(name), operation, show_progress)


def log_timing(func):
    """Decorator writing the duration of each call at DEBUG"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__qualname__} took {time.perf_counter() - started:.3f}s")

    return wrapper
