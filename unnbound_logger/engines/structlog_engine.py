"""Engine backed by structlog.

An alternative to the stdlib engine producing the same JSON entries. The
structlog logger is built per engine instance with ``wrap_logger`` instead
of ``structlog.configure``, so using this engine never changes structlog
configuration the host application may rely on.
"""

from __future__ import annotations

import sys
from typing import IO, Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from unnbound_logger.engines.base import BaseEngine
from unnbound_logger.types import LogLevel

_ENTRY_KEY = "_unnbound_entry"

_METHODS = {
    LogLevel.ERROR: "error",
    LogLevel.WARN: "warning",
    LogLevel.INFO: "info",
    LogLevel.DEBUG: "debug",
}


def unwrap_entry(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Structlog processor replacing the event dict with a facade entry.

    Values bound on the structlog logger are kept unless the entry defines
    the same key.
    """
    entry = event_dict.pop(_ENTRY_KEY, None)
    if not isinstance(entry, dict):
        return event_dict
    event_dict.pop("event", None)
    return {**event_dict, **entry}


class StructlogEngine(BaseEngine):
    """Engine rendering entries with structlog's JSONRenderer.

    Args:
        level: Minimum level to emit
        file: Output file (default: stdout)
        processors: Extra processors run after the entry is unwrapped and
            before rendering
        **bound: Static key/values bound on every entry

    Example:
        >>> engine = StructlogEngine(level="debug", region="eu-west-1")
        >>> logger = UnnboundLogger(engine=engine)
    """

    def __init__(
        self,
        level: LogLevel | str = LogLevel.INFO,
        file: IO[str] | None = None,
        processors: list[Processor] | None = None,
        **bound: Any,
    ) -> None:
        super().__init__(level)
        chain: list[Processor] = [
            unwrap_entry,
            *(processors or []),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(default=str),
        ]
        self._logger = structlog.wrap_logger(
            structlog.PrintLogger(file=file or sys.stdout),
            processors=chain,
            wrapper_class=structlog.make_filtering_bound_logger(self.level.stdlib_level),
            context_class=dict,
            cache_logger_on_first_use=False,
        ).bind(**bound)

    def _write(self, level: LogLevel, entry: dict[str, Any]) -> None:
        method = getattr(self._logger, _METHODS[level])
        method(entry.get("message") or "", **{_ENTRY_KEY: entry})
