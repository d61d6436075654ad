"""Log output for Stowaway: plain text or one JSON object per line."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from stowaway.errors import ConfigurationError

# Attributes the client passes through ``extra=`` that JSON output keeps.
REQUEST_FIELDS = ("command", "method", "url", "status", "duration_ms")
EXPIRY_FIELDS = ("container", "object", "delete_at")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# httpx and httpcore log every request at INFO; the dispatcher already does.
_CHATTY_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Every entry has ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``.  Request attributes set by the command dispatcher and
    container/object/deadline attributes set by the expiry sweeper are
    copied when present; datetimes are written in ISO 8601.  A traceback,
    if any, goes to ``exception``.
    """

    fields = REQUEST_FIELDS + EXPIRY_FIELDS

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self.fields:
            value = getattr(record, key, None)
            if isinstance(value, datetime):
                value = value.isoformat()
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    if fmt == "text":
        return logging.Formatter(TEXT_FORMAT)
    raise ConfigurationError(f"Unknown log format {fmt!r}, expected 'text' or 'json'")


def configure_logging(level: str = "INFO", fmt: str = "text", stream: TextIO | None = None) -> None:
    """Send all log records to one handler on the root logger.

    Handlers installed earlier are removed.  Unless ``level`` is DEBUG, the
    per-request INFO lines of httpx and httpcore are silenced.

    Args:
        level: Log level name; unknown names fall back to INFO.
        fmt: ``"text"`` or ``"json"``.
        stream: Output stream, defaults to stderr.

    Raises:
        ConfigurationError: If ``fmt`` is neither text nor json.
    """
    formatter = _formatter(fmt)
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.setLevel(numeric_level)
    root.addHandler(handler)

    third_party_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
