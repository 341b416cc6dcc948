"""JSON log formatter for structured logging.

This module provides a logging formatter that outputs one JSON object per
line. Records produced by the logger facade carry their complete entry and
are rendered as-is; ordinary stdlib records (from application code or
third-party libraries) are mapped onto the same schema.

Example log output:
    {
        "timestamp": "2025-10-21T10:30:00.000Z",
        "level": "info",
        "type": "general",
        "logId": "0b6c7a52-...",
        "traceId": "abc123-def456",
        "message": "Generated invoice batch",
        "service": "billing",
        "context": {"batch_size": 10}
    }
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from unnbound_logger.ids import generate_uuid

# Attribute carrying a facade-built entry on a LogRecord
ENTRY_ATTR = "unnbound_entry"

_LEVEL_NAMES = {
    logging.CRITICAL: "error",
    logging.ERROR: "error",
    logging.WARNING: "warn",
    logging.INFO: "info",
    logging.DEBUG: "debug",
}

_RESERVED_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "trace_id",
    "context",
    "exc_info",
    "exc_text",
    "stack_info",
    ENTRY_ATTR,
}


class JSONFormatter(logging.Formatter):
    """Formatter that outputs logs as JSON.

    Attributes:
        service_name: Service tag added to plain stdlib records
        include_context: Whether to include extra fields of plain records
        include_source: Whether to add file/line/function of plain records

    Example:
        >>> formatter = JSONFormatter(service_name="billing")
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
        >>> logger = logging.getLogger(__name__)
        >>> logger.addHandler(handler)
        >>> logger.info("Invoice sent", extra={"context": {"invoice_id": "inv-1"}})
    """

    def __init__(
        self,
        service_name: str | None = None,
        include_context: bool = True,
        include_source: bool = False,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a single JSON line.

        Args:
            record: The log record to format

        Returns:
            JSON string representation of the log record
        """
        entry = getattr(record, ENTRY_ATTR, None)
        if isinstance(entry, dict):
            return json.dumps(entry, default=str)

        log_entry: dict[str, Any] = {
            "logId": generate_uuid(),
            "timestamp": self._format_timestamp(record.created),
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "type": "general",
            "traceId": self._extract_trace_id(record),
            "message": record.getMessage(),
            "logger": record.name,
        }
        if self.service_name:
            log_entry["service"] = self.service_name

        if self.include_context:
            context = self._extract_context(record)
            if context:
                log_entry["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["error"] = {
                "name": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "stack": self._format_exception(record.exc_info),
            }

        if self.include_source:
            log_entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_entry, default=str)

    def _format_timestamp(self, created: float) -> str:
        """Format timestamp as ISO 8601 in UTC.

        Example:
            >>> JSONFormatter()._format_timestamp(1697884200.0)
            '2023-10-21T10:30:00.000Z'
        """
        dt = datetime.fromtimestamp(created, tz=UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def _extract_trace_id(self, record: logging.LogRecord) -> str | None:
        return getattr(record, "trace_id", None)

    def _extract_context(self, record: logging.LogRecord) -> dict[str, Any] | None:
        """Extract the context dict, or all non-standard extra fields."""
        context = getattr(record, "context", None)
        if context and isinstance(context, dict):
            return dict(context)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_FIELDS and not key.startswith("_")
        }
        return extra if extra else None

    def _format_exception(
        self,
        exc_info: tuple[type[BaseException] | None, BaseException | None, TracebackType | None],
    ) -> str:
        return "".join(traceback.format_exception(*exc_info))
