"""
Structured logging for the RCFA service.

Every record emitted while a request is in flight is stamped with the
request id, the calling principal and the investigation named in the URL,
so a lost promotion race or a refused transition can be traced back to
one request from a single log line.

- LOG_FORMAT: "json" or "readable" (default: json unless DEBUG/TESTING)
- LOG_LEVEL:  default INFO for json output, DEBUG otherwise
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Correlation fields; filled from the request unless the caller passed them
CONTEXT_FIELDS = ("request_id", "user_id", "rcfa_id")
# Per-request fields set by the timing middleware
HTTP_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr")
# Domain fields passed by services
DOMAIN_FIELDS = ("event_type",)

_JSON_FIELDS = CONTEXT_FIELDS + HTTP_FIELDS + DOMAIN_FIELDS

# Short labels for the readable suffix
_READABLE_LABELS = {
    "request_id": "req",
    "user_id": "user",
    "rcfa_id": "rcfa",
    "event_type": "event",
}


class RequestContextFilter(logging.Filter):
    """Add request correlation fields to every record logged inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "user_id", None) is None:
            principal = getattr(g, "principal", None)
            record.user_id = principal.user_id if principal else None
        if getattr(record, "rcfa_id", None) is None:
            record.rcfa_id = (request.view_args or {}).get("rcfa_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for key in _JSON_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        context = " ".join(
            f"{label}={getattr(record, key)}"
            for key, label in _READABLE_LABELS.items()
            if getattr(record, key, None) is not None
        )
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"
        if context:
            line += f" [{context}]"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(config) -> logging.Formatter:
    """Pick the formatter for *config* (a Flask config or any mapping)."""
    fmt = (config.get("LOG_FORMAT") or "").lower()
    if not fmt:
        quiet = config.get("DEBUG", False) or config.get("TESTING", False)
        fmt = "readable" if quiet else "json"
    if fmt not in ("json", "readable"):
        raise ValueError(f"Unknown LOG_FORMAT: {fmt}")
    return JSONFormatter() if fmt == "json" else ReadableFormatter()


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*."""
    formatter = build_formatter(app.config)
    is_json = isinstance(formatter, JSONFormatter)

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_json else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    # Cleared first so repeated create_app() calls do not stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not app.config.get("TESTING", False):
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if is_json else "readable")
