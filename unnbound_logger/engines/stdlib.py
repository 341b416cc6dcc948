"""Engine backed by the standard ``logging`` module.

This is the default engine. Each logger facade writes through a named
``logging.Logger`` whose handler renders entries with :class:`JSONFormatter`,
one JSON object per line on stdout.

The module also provides :func:`configure_logging`, which points the root
logger at the same formatter and injects the active trace id into every
stdlib record, so logs from application code and third-party libraries
share the schema and carry ``traceId``.

Example:
    >>> from unnbound_logger.engines.stdlib import configure_logging
    >>> configure_logging(service_name="billing", log_level="INFO")
    >>> logging.getLogger(__name__).info("Service started")
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

from unnbound_logger.context import get_trace_id
from unnbound_logger.engines.base import BaseEngine
from unnbound_logger.exceptions import ConfigurationError
from unnbound_logger.formatter import ENTRY_ATTR, JSONFormatter
from unnbound_logger.types import LogLevel

DEFAULT_LOGGER_NAME = "unnbound"


class TraceIDFilter(logging.Filter):
    """Logging filter that adds the active trace ID to log records.

    Example:
        >>> from unnbound_logger.context import set_trace_id
        >>> set_trace_id("test-123")
        >>> logger = logging.getLogger()
        >>> logger.addFilter(TraceIDFilter())
        >>> # All logs will now include traceId="test-123"
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add trace ID to the log record.

        Returns:
            True (always allows the record through)
        """
        if getattr(record, "trace_id", None) is None:
            record.trace_id = get_trace_id()
        return True


class StdlibLoggingEngine(BaseEngine):
    """Engine writing JSON lines through a dedicated stdlib logger.

    Constructing an engine replaces the handlers of its named logger, so
    creating several engines with the same name does not duplicate output.

    Args:
        level: Minimum level to emit
        stream: Output stream (default: stdout)
        logger_name: Name of the underlying ``logging.Logger``
        handler: Custom handler; when given, ``stream`` is ignored and the
            handler keeps its own formatter if it has one
    """

    def __init__(
        self,
        level: LogLevel | str = LogLevel.INFO,
        stream: IO[str] | None = None,
        logger_name: str = DEFAULT_LOGGER_NAME,
        handler: logging.Handler | None = None,
    ) -> None:
        super().__init__(level)
        self._logger = logging.getLogger(logger_name)
        self._logger.setLevel(self.level.stdlib_level)
        self._logger.propagate = False

        # Remove existing handlers to avoid duplicates
        self._logger.handlers.clear()

        if handler is None:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(JSONFormatter())
        elif handler.formatter is None:
            handler.setFormatter(JSONFormatter())
        handler.setLevel(self.level.stdlib_level)
        self._logger.addHandler(handler)
        self.handler = handler

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _write(self, level: LogLevel, entry: dict[str, Any]) -> None:
        self._logger.log(
            level.stdlib_level,
            entry.get("message") or "",
            extra={ENTRY_ATTR: entry},
        )


def configure_logging(
    service_name: str | None = None,
    log_level: str = "INFO",
    include_context: bool = True,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Sets up:
    - JSON formatted output to stdout
    - Trace ID injection on all records
    - Specified log level

    This should be called once at service startup.

    Args:
        service_name: Service tag added to every record
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include extra fields in output
        stream: Output stream (default: stdout)

    Returns:
        Configured root logger instance

    Raises:
        ConfigurationError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    handler.addFilter(TraceIDFilter())
    root_logger.addHandler(handler)

    return root_logger
