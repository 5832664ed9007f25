"""
VinScan — Structured JSON Logger

One JSON object per line. Every entry carries:
  - timestamp (ISO 8601, UTC, taken from the record)
  - service and environment, fixed per process
  - level, logger name and source location
  - message
  - session_id / client_id lifted out of the context, when present, so
    one scan can be followed across the pipeline, router and registry
  - the remaining context fields (source, state, vin, ...)
  - failure_kind and traceback for exceptions raised by VinScan code
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Mapping

from vinscan.config import get_settings

SERVICE_NAME = "vinscan"

# Context keys promoted to the top level of the entry
CORRELATION_KEYS = ("session_id", "client_id")


class StructuredJsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def __init__(self, static_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            **self.static_fields,
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            context = dict(context)
            for key in CORRELATION_KEYS:
                if key in context:
                    entry[key] = context.pop(key)
            if context:
                entry["context"] = context

        if record.exc_info and record.exc_info[1]:
            kind = getattr(record.exc_info[1], "kind", None)
            if kind is not None:
                entry["failure_kind"] = getattr(kind, "value", kind)
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Return a logger configured with structured JSON output.

    Entries do not propagate to the root logger, so running under uvicorn
    does not print them twice.

    Usage:
        from vinscan.common.logger import get_logger
        logger = get_logger(__name__)
        logger.info("Lookup started", extra={"context": {"session_id": "..."}})
    """
    settings = get_settings()
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredJsonFormatter({
            "service": SERVICE_NAME,
            "environment": settings.environment.value,
        }))
        logger.addHandler(handler)
        logger.propagate = False
    level = level or settings.log_level.value
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
