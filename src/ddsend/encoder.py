"""
Line encoders: render a logging.LogRecord into one line of bytes.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import EncodingError

# LogRecord attributes that are not user-supplied extras
RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "asctime", "taskName",
))


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


def _extra_attrs(record: logging.LogRecord) -> Dict[str, Any]:
    extra_attrs = {}
    for key, value in record.__dict__.items():
        if key in RESERVED_ATTRS:
            continue
        try:
            json.dumps(value)  # Check if serializable
            extra_attrs[key] = value
        except (TypeError, ValueError):
            extra_attrs[key] = str(value)
    return extra_attrs


class LineEncoder:
    """Base class for encoders. ``is_json`` selects the payload framing."""

    is_json = True

    def encode(
        self,
        record: logging.LogRecord,
        formatter: Optional[logging.Formatter] = None,
    ) -> bytes:
        raise NotImplementedError

    @staticmethod
    def _message(
        record: logging.LogRecord, formatter: Optional[logging.Formatter]
    ) -> str:
        if formatter is not None:
            return formatter.format(record)
        return record.getMessage()


class JSONLineEncoder(LineEncoder):
    """
    Renders a record as one JSON object followed by a newline.

    Example:
        {"timestamp": "...", "level": "INFO", "message": "hi", "logger": "app", ...}
    """

    is_json = True

    def __init__(self, extra_fields: Optional[Dict[str, Any]] = None):
        """
        Args:
            extra_fields: Extra fields to include in every log entry
        """
        self.extra_fields = extra_fields or {}

    def _format_record(
        self,
        record: logging.LogRecord,
        formatter: Optional[logging.Formatter],
    ) -> Dict[str, Any]:
        """Convert LogRecord to dictionary."""
        entry = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "message": self._message(record, formatter),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **self.extra_fields,
        }

        # Include exception info if present
        if record.exc_info:
            fmt = formatter or logging.Formatter()
            entry["exception"] = fmt.formatException(record.exc_info)

        extra_attrs = _extra_attrs(record)
        if extra_attrs:
            entry["extra"] = extra_attrs

        return entry

    def encode(
        self,
        record: logging.LogRecord,
        formatter: Optional[logging.Formatter] = None,
    ) -> bytes:
        try:
            entry = self._format_record(record, formatter)
            line = json.dumps(entry, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Unable to encode record: {exc}") from exc
        return (line + "\n").encode("utf-8")


class TextLineEncoder(LineEncoder):
    """
    Renders a record as a logfmt-style line, no colors.

    Example:
        time="2024-01-01T00:00:00+00:00" level=info msg="hi" user_id=42
    """

    is_json = False

    @staticmethod
    def _quote(value: Any) -> str:
        text = str(value)
        if text and not any(c in text for c in ' ="\n\t'):
            return text
        return json.dumps(text, ensure_ascii=False)

    def encode(
        self,
        record: logging.LogRecord,
        formatter: Optional[logging.Formatter] = None,
    ) -> bytes:
        try:
            fields = [
                ("time", _timestamp(record)),
                ("level", record.levelname.lower()),
                ("msg", self._message(record, formatter)),
            ]
            fields.extend(sorted(_extra_attrs(record).items()))
            if record.exc_info:
                fmt = formatter or logging.Formatter()
                fields.append(("error", fmt.formatException(record.exc_info)))
            line = " ".join(f"{k}={self._quote(v)}" for k, v in fields)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Unable to encode record: {exc}") from exc
        return (line + "\n").encode("utf-8")
