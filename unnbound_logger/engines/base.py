"""Logging engine interface.

The logger facade depends only on :class:`LoggingEngine`. Concrete engines
decide how a record is rendered and where it goes; all of them receive the
record as a flat ``meta`` dict with camelCase keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from unnbound_logger.ids import generate_timestamp, generate_uuid
from unnbound_logger.types import RESERVED_FIELDS, LogLevel, LogType

_SEVERITY = {LogLevel.ERROR: 40, LogLevel.WARN: 30, LogLevel.INFO: 20, LogLevel.DEBUG: 10}


@runtime_checkable
class LoggingEngine(Protocol):
    """Minimal capability every backend must provide."""

    def log(self, level: LogLevel | str, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None: ...

    def error(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None: ...

    def warn(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None: ...

    def info(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None: ...

    def debug(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None: ...


def merge_entry(level: LogLevel, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> dict[str, Any]:
    """Combine ``message`` and ``meta`` into one output entry.

    ``meta`` is authoritative for reserved fields. Fields from a mapping
    ``message`` that would overwrite a reserved or already present key are
    kept under ``context`` instead of being dropped. Missing ``logId``,
    ``timestamp`` and ``type`` are filled in so every engine emits complete
    entries even when called directly.
    """
    entry: dict[str, Any] = dict(meta)
    entry["level"] = level.value

    if isinstance(message, Mapping):
        shadowed: dict[str, Any] = {}
        for key, value in message.items():
            key = str(key)
            if key in RESERVED_FIELDS or key in entry:
                shadowed[key] = value
            else:
                entry[key] = value
        if shadowed:
            context = entry.get("context")
            entry["context"] = {**shadowed, **context} if isinstance(context, dict) else shadowed
        entry.setdefault("message", "")
    elif message and not entry.get("message"):
        entry["message"] = str(message)
    else:
        entry.setdefault("message", "")

    entry.setdefault("logId", generate_uuid())
    entry.setdefault("timestamp", generate_timestamp())
    entry.setdefault("type", LogType.GENERAL.value)
    return entry


class BaseEngine(ABC):
    """Shared level handling for concrete engines.

    Subclasses implement :meth:`_write`, which receives a fully merged entry
    for records at or above the configured level.
    """

    def __init__(self, level: LogLevel | str = LogLevel.INFO) -> None:
        self.level = LogLevel.parse(level)

    def is_enabled(self, level: LogLevel) -> bool:
        return _SEVERITY[level] >= _SEVERITY[self.level]

    def log(self, level: LogLevel | str, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None:
        resolved = LogLevel.parse(level)
        if not self.is_enabled(resolved):
            return
        self._write(resolved, merge_entry(resolved, message, meta))

    def error(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None:
        self.log(LogLevel.ERROR, message, meta)

    def warn(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None:
        self.log(LogLevel.WARN, message, meta)

    def info(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None:
        self.log(LogLevel.INFO, message, meta)

    def debug(self, message: str | Mapping[str, Any], meta: Mapping[str, Any]) -> None:
        self.log(LogLevel.DEBUG, message, meta)

    @abstractmethod
    def _write(self, level: LogLevel, entry: dict[str, Any]) -> None:
        """Render and deliver one entry."""
