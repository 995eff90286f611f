"""
Session-Correlated Logging

Every log line emitted while a registry operation, a context callback or a
housekeeper sweep is in progress can carry the node, the context name and
the session id it concerns. Fields are bound two ways:

- scoped:   with StructuredLogger.context(session_id=..., context="/shop"):
- per logger: StructuredLogger("kvsession.demo").with_extra(node="node0")

Library modules keep using logging.getLogger(__name__); the formatters here
pick up scoped fields for them too. Output is one JSON object per line, or
a compact text line with trailing key=value pairs when JSON is switched off.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional, TextIO


class LogLevel(IntEnum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_name(cls, name: str) -> LogLevel:
        """Parse a KVSESSION_LOG_LEVEL value (case-insensitive)."""
        return cls[name.upper()]


# Fields bound by StructuredLogger.context() for the current task/thread
_scoped_fields: ContextVar[dict[str, Any]] = ContextVar("kvsession_log_fields", default={})

# Attributes every stdlib LogRecord has; anything else came in via extra=
_STDLIB_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = dict(_scoped_fields.get())
    for key, value in vars(record).items():
        if key not in _STDLIB_RECORD_ATTRS:
            fields[key] = value
    return fields


@dataclass
class LogEntry:
    """One formatted log line before rendering."""

    timestamp: str
    level: str
    logger: str
    message: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> LogEntry:
        return cls(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            fields=_record_fields(record),
        )

    def to_json(self) -> str:
        data = {
            "@timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "logger": self.logger,
        }
        data.update(self.fields)
        return json.dumps(data, default=str)

    def to_text(self) -> str:
        line = f"{self.timestamp} | {self.level:<8} | {self.logger} | {self.message}"
        if self.fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in self.fields.items())
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record, scoped and extra fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = LogEntry.from_record(record)
        if record.exc_info:
            entry.fields["exception"] = self.formatException(record.exc_info)
        return entry.to_json()


class TextFormatter(logging.Formatter):
    """Human-readable line with session fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        line = LogEntry.from_record(record).to_text()
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger:
    """
    Logger whose calls take fields as keyword arguments.

    Usage:
        log = StructuredLogger("kvsession.demo").with_extra(node="node0")

        with StructuredLogger.context(session_id=old_id):
            new_id = context.renew_session_id(session)
            log.info("Renewed session id", new_session_id=new_id)
    """

    __slots__ = ("_logger", "_bound")

    def __init__(self, name: str, bound: Optional[dict[str, Any]] = None) -> None:
        self._logger = logging.getLogger(name)
        self._bound = dict(bound or {})

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(LogLevel.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(LogLevel.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(LogLevel.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(LogLevel.ERROR, message, fields)

    def _emit(self, level: LogLevel, message: str, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, extra={**self._bound, **fields})

    def with_extra(self, **fields: Any) -> StructuredLogger:
        """Child logger with more fields bound to every call."""
        return StructuredLogger(self._logger.name, {**self._bound, **fields})

    @staticmethod
    def context(**fields: Any) -> _FieldScope:
        """Bind fields to every log line emitted inside the with block."""
        return _FieldScope(fields)


class _FieldScope:
    __slots__ = ("_fields", "_token")

    def __init__(self, fields: dict[str, Any]) -> None:
        self._fields = fields
        self._token = None

    def __enter__(self) -> _FieldScope:
        self._token = _scoped_fields.set({**_scoped_fields.get(), **self._fields})
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _scoped_fields.reset(self._token)
            self._token = None


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """Install a single root handler (stderr unless stream is given)."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter() if json_output else TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # driver chatter stays out of session logs
    for noisy in ("asyncio", "redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
