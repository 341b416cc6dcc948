"""Identifier and timestamp generation.

All identifiers emitted by the library (log ids, trace ids, request ids) are
UUIDv4 strings. Timestamps are ISO 8601 in UTC with millisecond precision and
a ``Z`` suffix, matching the format produced by the JSON formatter.
"""

import time
import uuid
from datetime import UTC, datetime


def generate_uuid() -> str:
    """Generate a new UUIDv4 string.

    Returns:
        A unique identifier (36 characters, hyphenated)

    Example:
        >>> len(generate_uuid())
        36
    """
    return str(uuid.uuid4())


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with milliseconds and ``Z`` suffix.

    Naive datetimes are assumed to already be in UTC.

    Example:
        >>> format_timestamp(datetime(2025, 1, 1, 12, 0, tzinfo=UTC))
        '2025-01-01T12:00:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def generate_timestamp() -> str:
    """Return the current time as an ISO 8601 UTC string."""
    return format_timestamp(datetime.now(UTC))


def now() -> float:
    """Current wall-clock time in epoch seconds.

    Used as the default ``start_time`` for request/transaction timing.
    """
    return time.time()


def elapsed_ms(start_time: float | datetime | None, end_time: float | None = None) -> float:
    """Milliseconds elapsed since ``start_time``.

    Args:
        start_time: Epoch seconds (as returned by ``time.time()``) or an
            aware/naive-UTC datetime. ``None`` yields ``0``.
        end_time: Epoch seconds to measure to. Defaults to now.

    Returns:
        Non-negative elapsed time in milliseconds, rounded to 3 decimals
    """
    if start_time is None:
        return 0.0
    if isinstance(start_time, datetime):
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=UTC)
        start_time = start_time.timestamp()
    try:
        start = float(start_time)
    except (TypeError, ValueError):
        return 0.0
    end = now() if end_time is None else end_time
    return round(max(0.0, (end - start) * 1000.0), 3)
