"""Logging configuration with gateway severity levels."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from datetime import datetime
from enum import IntEnum
from typing import TextIO

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_ROOT_LOGGER = "modmqttgw"


class Severity(IntEnum):
    CRITICAL = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


_LABELS = ("CRITICAL", "ERROR", "WARN ", "INFO ", "DEBUG", "TRACE")

_PYTHON_LEVELS = {
    Severity.CRITICAL: logging.CRITICAL,
    Severity.ERROR: logging.ERROR,
    Severity.WARN: logging.WARNING,
    Severity.INFO: logging.INFO,
    Severity.DEBUG: logging.DEBUG,
    Severity.TRACE: TRACE,
}


def severity_label(level: int) -> str:
    """Return the fixed-width label printed for a severity."""
    index = int(level)
    if 0 <= index < len(_LABELS):
        return _LABELS[index]
    return str(index)


def _severity_of(python_level: int) -> Severity:
    for severity, threshold in _PYTHON_LEVELS.items():
        if python_level >= threshold:
            return severity
    return Severity.TRACE


def timestamps_wanted(environ: Mapping[str, str], stderr_fd: int = 2) -> bool:
    """Return False when stderr is connected to the systemd journal."""
    journal = environ.get("JOURNAL_STREAM")
    if journal is None:
        return True
    separator = journal.find(":")
    if len(journal) > 2 and separator != 0:
        env_inode = journal[separator + 1 :]
        if env_inode:
            try:
                inode = os.fstat(stderr_fd).st_ino
            except OSError:
                return True
            if str(inode) == env_inode:
                return False
    return True


class _SeverityFormatter(logging.Formatter):
    def __init__(self, with_timestamp: bool) -> None:
        super().__init__()
        self._with_timestamp = with_timestamp

    def format(self, record: logging.LogRecord) -> str:
        label = severity_label(_severity_of(record.levelno))
        text = f"[{label}] {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        if self._with_timestamp:
            stamp = datetime.fromtimestamp(record.created).isoformat(sep=" ")
            text = f"{stamp}: {text}"
        return text


def init_logging(level: int, stream: TextIO | None = None) -> logging.Handler:
    """Send gateway log records up to ``level`` to ``stream`` (stderr by default)."""
    severity = Severity(level)
    python_level = _PYTHON_LEVELS[severity]
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(_SeverityFormatter(timestamps_wanted(os.environ)))
    handler.setLevel(python_level)
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.addHandler(handler)
    logger.setLevel(python_level)
    return handler