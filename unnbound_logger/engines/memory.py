"""In-memory engine keeping emitted entries in a list."""

from __future__ import annotations

from typing import Any

from unnbound_logger.engines.base import BaseEngine
from unnbound_logger.types import LogLevel


class MemoryEngine(BaseEngine):
    """Engine that records entries instead of writing them.

    Useful in tests and for embedding the logger where entries are shipped
    by the host application.

    Example:
        >>> engine = MemoryEngine(level="debug")
        >>> UnnboundLogger(engine=engine).info("hello")
        >>> engine.entries[0]["message"]
        'hello'
    """

    def __init__(self, level: LogLevel | str = LogLevel.DEBUG) -> None:
        super().__init__(level)
        self.entries: list[dict[str, Any]] = []

    def _write(self, level: LogLevel, entry: dict[str, Any]) -> None:
        self.entries.append(entry)

    def by_type(self, log_type: str) -> list[dict[str, Any]]:
        return [entry for entry in self.entries if entry.get("type") == log_type]

    def clear(self) -> None:
        self.entries.clear()
