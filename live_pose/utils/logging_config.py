"""Logging configuration for the live pose pipeline."""

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

# Default logging configuration
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = logging.INFO

NOISY_LOGGERS = ("tensorflow", "absl", "PIL", "matplotlib")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file (optional).
        log_format: Log message format.
        date_format: Date format for log messages.
        max_bytes: Maximum size of log file before rotation.
        backup_count: Number of backup log files to keep.
        console_output: Whether to output logs to console.

    Returns:
        Root logger instance.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format, date_format)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging configured: level={level}, file={log_file}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


class LoggerMixin:
    """
    Mixin class that provides a logger property.

    Classes that inherit from this mixin will have access to a
    self.logger attribute configured for that class.
    """

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        if not hasattr(self, "_logger"):
            self._logger = logging.getLogger(
                f"{self.__class__.__module__}.{self.__class__.__name__}"
            )
        return self._logger


class FpsMeter:
    """
    Throughput logger for the live loop.

    Counts ticks and logs the rate every ``log_interval`` seconds so a
    continuous loop does not flood the log.
    """

    def __init__(
        self,
        logger: logging.Logger,
        description: str = "Inference",
        log_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the meter.

        Args:
            logger: Logger instance to use.
            description: Label used in log lines.
            log_interval: Seconds between log lines.
            clock: Monotonic time source.
        """
        self.logger = logger
        self.description = description
        self.log_interval = log_interval
        self._clock = clock
        self._window_start = clock()
        self._window_ticks = 0
        self.total = 0
        self.fps = 0.0

    def tick(self) -> None:
        """Record one completed unit of work."""
        self.total += 1
        self._window_ticks += 1

        now = self._clock()
        elapsed = now - self._window_start
        if elapsed >= self.log_interval:
            self.fps = self._window_ticks / elapsed
            self.logger.info(f"{self.description}: {self.fps:.1f} fps ({self.total} total)")
            self._window_start = now
            self._window_ticks = 0
