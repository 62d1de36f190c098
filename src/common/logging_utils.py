"""Centralized logging helpers.

Every module logs through the standard ``logging`` package with a
module-level ``logger = logging.getLogger(__name__)``. Structured context is
attached through ``extra=extra_context(...)`` so the JSON formatter can emit
it as fields while the console formatter keeps plain messages.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import time
import urllib.parse
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from constants import Constants

# Fields extra_context() may attach to a LogRecord.
_CONTEXT_FIELDS = (
    "event",
    "component",
    "action",
    "outcome",
    "target",
    "package_id",
    "version",
    "repository",
    "status_code",
    "duration_ms",
    "count",
    "attempt",
    "context",
)


def extra_context(**kwargs: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for logger calls, dropping empty values."""
    return {key: value for key, value in kwargs.items() if value is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by this logger."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: Optional[str]) -> str:
    """Strip credentials and query strings from a URL before logging it."""
    if not url:
        return ""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid url>"
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, "", ""))


class Timer:
    """Context manager measuring wall time in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds so far (or total once the block exited)."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including structured context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure the root logger from the environment.

    ``PSRESGET_LOG_LEVEL`` selects the level (default INFO) and
    ``PSRESGET_LOG_FORMAT=json`` switches the console handler to JSON lines.
    Calling it again replaces the previously installed handlers.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    level_name = os.environ.get(Constants.ENV_LOG_LEVEL, "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    console = logging.StreamHandler(sys.stderr)
    if os.environ.get(Constants.ENV_LOG_FORMAT, "").lower() == "json":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT_FILE))
        root.addHandler(file_handler)
