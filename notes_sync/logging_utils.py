"""
Logging helpers for the sync components.

Package modules log through get_sync_logger(). Load context (stream id,
load type, page, merge counts) travels in `extra=` and the JSON formatter
lifts it into top-level fields, so a log collector can follow one stream's
fetches and merges:

    {"timestamp": "...", "level": "INFO", "logger": "notes_sync.paging.mediator",
     "message": "append merged page 3", "load_type": "append", "page": 3,
     "fetched": 5, "end_reached": false, "duration_ms": 12}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

ROOT_LOGGER = "notes_sync"

# Context fields promoted to the top level, in output order
SYNC_CONTEXT_FIELDS = (
    "stream_id",
    "load_type",
    "page",
    "fetched",
    "end_reached",
    "generation",
    "duration_ms",
)


class StructuredJsonFormatter(logging.Formatter):
    """Formats a record as one JSON line carrying its sync context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in SYNC_CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Send every notes_sync log record to stream as JSON lines.

    Args:
        level: Logging level (default: INFO)
        stream: Output stream (default: stdout)

    Returns:
        The package root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_sync_logger(component: str) -> logging.Logger:
    """Logger for a package component, e.g. get_sync_logger("paging.mediator")."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


class StreamLoggerAdapter(logging.LoggerAdapter):
    """Stamps a paging stream's id on every record it logs.

    Fields passed in `extra=` at the call site are kept alongside it.
    """

    def __init__(self, logger: logging.Logger, stream_id: str):
        super().__init__(logger, {"stream_id": stream_id})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
