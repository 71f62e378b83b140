"""Logger set-up driven by the command-line verbosity flags."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence, TextIO

_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}


class _DevelopmentFormatter(logging.Formatter):
    """Tab separated: ISO8601 time, capital level, caller, message."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).astimezone()
        when = (
            stamp.strftime("%Y-%m-%dT%H:%M:%S.")
            + f"{stamp.microsecond // 1000:03d}"
            + stamp.strftime("%z")
        )
        level = _LEVEL_NAMES.get(record.levelno, record.levelname)
        line = "\t".join(
            (when, level, f"{record.filename}:{record.lineno}", record.getMessage())
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


@dataclass
class LoggerConfig:
    """Settings used to build the application logger."""

    level: int = logging.WARNING
    name: str = "yab"
    stream: TextIO | None = None

    def build(self) -> logging.Logger:
        """Configure and return the logger described by this config."""
        logger = logging.getLogger(self.name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        handler = logging.StreamHandler(self.stream if self.stream is not None else sys.stderr)
        handler.setFormatter(_DevelopmentFormatter())
        logger.addHandler(handler)
        logger.setLevel(self.level)
        logger.propagate = False
        return logger


def get_logger_verbosity(verbosity: Sequence[bool] | None) -> int:
    """Map the number of -v flags to a logging level."""
    count = len(verbosity or ())
    if count == 0:
        return logging.WARNING
    if count == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logger_config(opts: Any) -> LoggerConfig:
    """Return a logger config whose level follows ``opts.verbosity``."""
    return LoggerConfig(level=get_logger_verbosity(opts.verbosity))