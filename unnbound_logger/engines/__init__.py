"""Logging engines: the backends records are rendered by."""

from __future__ import annotations

from unnbound_logger.engines.base import BaseEngine, LoggingEngine, merge_entry
from unnbound_logger.engines.memory import MemoryEngine
from unnbound_logger.engines.stdlib import (
    StdlibLoggingEngine,
    TraceIDFilter,
    configure_logging,
)
from unnbound_logger.engines.structlog_engine import StructlogEngine
from unnbound_logger.exceptions import ConfigurationError
from unnbound_logger.types import LogLevel

ENGINES: dict[str, type[BaseEngine]] = {
    "stdlib": StdlibLoggingEngine,
    "structlog": StructlogEngine,
}


def create_engine(name: str, level: LogLevel | str = LogLevel.INFO) -> BaseEngine:
    """Build a named engine with its default output.

    Raises:
        ConfigurationError: If ``name`` is not a known engine
    """
    try:
        engine_cls = ENGINES[name.strip().lower()]
    except (KeyError, AttributeError):
        raise ConfigurationError(f"Unknown log engine: {name!r} (expected one of {sorted(ENGINES)})") from None
    return engine_cls(level=level)


__all__ = [
    "LoggingEngine",
    "BaseEngine",
    "merge_entry",
    "create_engine",
    "ENGINES",
    "MemoryEngine",
    "StdlibLoggingEngine",
    "StructlogEngine",
    "TraceIDFilter",
    "configure_logging",
]
