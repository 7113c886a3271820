#!/usr/bin/env python3
"""
Logging setup for BCG

Console output goes to stderr so that stdout stays free for the user-facing
status lines printed by the CLI. Optional handlers:
- rotating log file (BCGConfig.logging.log_file)
- systemd journal when running under a unit
"""

import functools
import logging
import logging.handlers
import os
import sys
import time
from pathlib import Path
from typing import Dict, Optional

from bcg.utils.config import get_config

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class BCGFormatter(logging.Formatter):
    """Formatter that appends operation timings and colors console levels"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False):
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        line = super().format(record)

        duration = getattr(record, "duration", None)
        if duration is not None:
            line += f" [took {duration:.3f}s]"

        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{line}{self.RESET}" if color else line


class BCGLogger:
    """Thin wrapper around a stdlib logger with timing helpers"""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def time_operation(self, operation_name: str = None):
        """Decorator logging how long the wrapped call took"""

        def decorator(func):
            label = operation_name or f"{self.name}.{func.__name__}"

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                started = time.monotonic()
                self.logger.debug(f"Starting {label}")
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    self._log_timed(logging.ERROR, f"Failed {label}: {e}", time.monotonic() - started)
                    raise
                self._log_timed(logging.DEBUG, f"Completed {label}", time.monotonic() - started)
                return result

            return wrapper

        return decorator

    def _log_timed(self, level: int, message: str, duration: float):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra={"duration": duration})

    def log_batch_summary(self, operation: str, total: int, duration: float):
        """Log summary of a pass over all peers"""
        self.logger.info(f"{operation}: {total} peers in {duration:.2f}s")

    def debug(self, msg, *args, **kwargs):
        return self.logger.debug(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        return self.logger.info(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        return self.logger.warning(msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        return self.logger.error(msg, *args, **kwargs)


def setup_logging(
    config_manager=None,
    level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_file: Optional[str] = None,
    console_colors: bool = True,
) -> Dict[str, logging.Handler]:
    """
    Configure the root logger for a BCG run

    Explicit arguments win over the logging section of the tool settings.

    Returns:
        Mapping of handler name to the installed handler
    """
    settings = (config_manager.get_config() if config_manager else get_config()).logging
    level = level or settings.level
    log_to_file = settings.log_to_file if log_to_file is None else log_to_file
    log_file = log_file or settings.log_file

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handlers = {"console": logging.StreamHandler(sys.stderr)}
    handlers["console"].setFormatter(BCGFormatter(use_colors=console_colors))

    if log_to_file and log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = logging.handlers.RotatingFileHandler(
            path, maxBytes=5 * 1024 * 1024, backupCount=3
        )
        handlers["file"].setFormatter(BCGFormatter())

    # journald is optional; python-systemd is only present on service hosts
    if _under_systemd():
        try:
            from systemd import journal
        except ImportError:
            pass
        else:
            handlers["journal"] = journal.JournalHandler(SYSLOG_IDENTIFIER="bcg")
            handlers["journal"].setFormatter(BCGFormatter())

    for handler in handlers.values():
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)

    logging.getLogger("bcg.logging").debug(
        f"Logging configured: level={level.upper()}, handlers={sorted(handlers)}"
    )
    return handlers


def _under_systemd() -> bool:
    return "INVOCATION_ID" in os.environ or "JOURNAL_STREAM" in os.environ


def get_logger(name: str) -> BCGLogger:
    return BCGLogger(name)


class LoggingTimer:
    """Context manager logging start, end and duration of a pipeline stage"""

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.started = None

    def __enter__(self):
        self.started = time.monotonic()
        self.logger.log(self.level, f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self.started
        if exc_type is None:
            self.logger.log(self.level, f"Finished {self.operation} in {elapsed:.3f}s")
        else:
            self.logger.error(f"{self.operation} failed after {elapsed:.3f}s: {exc_val}")
        return False
