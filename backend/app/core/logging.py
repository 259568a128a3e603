"""
Structured JSON logging.

Every record is one JSON line carrying the request's correlation id and,
once the caller is authenticated, its organization. Pass structured fields
with ``extra={"extra_data": {...}}``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "flowless-backend"

# Request-scoped context, set by TracingMiddleware and the auth dependency
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
organization_id_ctx: ContextVar[Optional[str]] = ContextVar("organization_id", default=None)

_CONTEXT_FIELDS = (
    ("correlation_id", correlation_id_ctx),
    ("request_id", request_id_ctx),
    ("organization_id", organization_id_ctx),
)

# Libraries that log every request or query at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """Formatter that dumps records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "func": record.funcName,
            "line": record.lineno,
            "service": SERVICE_NAME,
        }

        for key, ctx in _CONTEXT_FIELDS:
            value = ctx.get()
            if value:
                log_data[key] = value

        extra = getattr(record, "extra_data", None)
        if isinstance(extra, dict):
            log_data.update(extra)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger through a single JSON stdout handler."""
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel("WARNING")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
