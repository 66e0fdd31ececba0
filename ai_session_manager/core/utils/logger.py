"""Logger configuration utilities with correlation ID support.

Handlers always write to stderr: stdout is reserved for the single JSON-RPC
response emitted per invocation.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

import contextvars

_CORRELATION_ID = contextvars.ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Inject the active correlation ID into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - delegation
        record.correlation_id = _CORRELATION_ID.get()
        return True


class StructuredFormatter(logging.Formatter):
    """Emit structured JSON log records."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str = "WARNING", *, structured: bool = False) -> None:
    """Configure root logging for the session manager."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(CorrelationIdFilter())
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | cid=%(correlation_id)s | %(message)s"
        )
        handler.setFormatter(formatter)
    root.addHandler(handler)


def set_correlation_id(value: Any) -> None:
    """Set the active correlation ID (usually the JSON-RPC request id)."""
    _CORRELATION_ID.set("-" if value is None or value == "" else str(value))


def get_correlation_id() -> str:
    """Return the active correlation ID for the current context."""
    return _CORRELATION_ID.get()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Retrieve a module-level logger."""
    return logging.getLogger(name if name else "ai_session_manager")


__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "get_correlation_id",
    "set_correlation_id",
]
