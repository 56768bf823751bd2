"""
Logging setup for the hub.

One stderr handler on the root logger, in one of two shapes:

  readable  colored single line, request id and scope appended (dev, tests)
  json      one object per line for log shipping (production)

LOG_FORMAT picks the shape explicitly; otherwise production gets json and
everything else readable. LOG_LEVEL sets the level (default INFO in
production, DEBUG elsewhere).

Records pick up request correlation in two ways: the timing middleware
passes method/path/status/... through ``extra=``, and RequestContextFilter
stamps the request id on every record emitted while a request is active.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes copied from a record into structured output when present.
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "workspace_id",
    "project_id",
    "user_id",
)

NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "flask_limiter")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class RequestContextFilter(logging.Filter):
    """Copy ``g.request_id`` onto records logged during a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None and has_request_context():
            record.request_id = getattr(g, "request_id", None)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     app.services.task_service (3f2a9c): Task created ...``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        ctx = _context(record)

        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}"
        if ctx.get("request_id"):
            line += f" ({ctx['request_id']})"
        line += f": {record.getMessage()}"
        if ctx.get("duration_ms") is not None:
            line += f" [{ctx['duration_ms']:.0f}ms]"
        scope = " ".join(
            f"{key.split('_')[0]}={ctx[key]}"
            for key in ("workspace_id", "project_id", "user_id")
            if key in ctx
        )
        if scope:
            line += f" {{{scope}}}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(app, is_prod: bool) -> str:
    fmt = (os.getenv("LOG_FORMAT") or app.config.get("LOG_FORMAT") or "").lower()
    if fmt in ("json", "readable"):
        return fmt
    return "json" if is_prod else "readable"


def configure_logging(app):
    """Install the root handler for *app*; safe to call once per app instance."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = (os.getenv("LOG_LEVEL") or app.config.get("LOG_LEVEL")
                  or ("INFO" if is_prod else "DEBUG"))
    level = getattr(logging, level_name.upper(), logging.INFO)
    fmt = _resolve_format(app, is_prod)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    # create_app runs more than once in tests; keep a single handler
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name.upper(), fmt)
