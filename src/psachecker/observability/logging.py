"""
Logging configuration for psachecker.

Logs always go to stderr so that stdout carries only the
``namespace: level`` results.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

ROOT_LOGGER_NAME = "psachecker"

# LogRecord attributes that are not user-supplied extra fields.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "message", "taskName",
})


def _utc(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonLogFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys are ``ts``, ``severity``, ``logger`` and ``msg``, followed by
    any ``extra={...}`` values the call site attached (``namespace``,
    ``resource``, ``level``) and finally the static ``fields`` given
    at construction.
    """

    def __init__(self, fields: dict[str, Any] | None = None):
        super().__init__()
        self.fields = dict(fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _utc(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "severity": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        )
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        entry.update(self.fields)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    klog-style lines so output blends with other kubectl tooling.

    ``W1019 14:03:11.512 psachecker.sources] message``; the severity
    letter is coloured only when writing to a terminal.
    """

    _SEVERITY_COLOURS = {"W": "\033[33m", "E": "\033[31m", "C": "\033[31m"}
    _RESET = "\033[0m"

    def __init__(self, stream: TextIO | None = None):
        super().__init__()
        stream = stream or sys.stderr
        self.colour = bool(getattr(stream, "isatty", lambda: False)())

    def format(self, record: logging.LogRecord) -> str:
        severity = record.levelname[:1]
        if self.colour and severity in self._SEVERITY_COLOURS:
            severity = f"{self._SEVERITY_COLOURS[severity]}{severity}{self._RESET}"
        stamp = _utc(record).strftime("%m%d %H:%M:%S.%f")[:-3]
        line = f"{severity}{stamp} {record.name}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: str = "WARNING",
    format: str = "human",
    output: TextIO | None = None,
    fields: dict[str, Any] | None = None,
) -> logging.Logger:
    """
    Configure the ``psachecker`` logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: ``human`` for klog-style lines, ``json`` for one object per line
        output: Output stream (default: stderr)
        fields: Static fields stamped on every JSON record

    Returns:
        The configured package logger

    Raises:
        ValueError: If the level or format is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level}")
    if format not in ("human", "json"):
        raise ValueError(f"unknown log format: {format}")

    stream = output or sys.stderr
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        JsonLogFormatter(fields) if format == "json" else ConsoleFormatter(stream)
    )

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger


def level_for_verbosity(verbosity: int, default: str = "WARNING") -> str:
    """Map ``-v`` counts to a log level name."""
    if verbosity >= 2:
        return "DEBUG"
    if verbosity == 1:
        return "INFO"
    return default
