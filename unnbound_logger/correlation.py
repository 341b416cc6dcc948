"""Request/response correlation table.

``UnnboundLogger.http_request`` mints a request id and a start time that the
later ``http_response`` call has to recover. Instead of hanging that state off
framework objects, the logger keeps it in an explicit table keyed by a
generated token. Only the token is attached to the request, in the slot each
framework reserves for extensions:

- Starlette/FastAPI ``Request``: the ASGI ``scope`` dict
- httpx ``Request``: ``request.extensions``
- a plain mutable mapping: the mapping itself

Requests without such a slot cannot be correlated; the response call then
falls back to explicit options.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any

from unnbound_logger.ids import generate_uuid

CORRELATION_TOKEN_KEY = "unnbound.correlation_token"
DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class CorrelationEntry:
    """Identifiers captured when a request was logged."""

    request_id: str
    trace_id: str
    start_time: float
    workflow_id: str | None = None


def token_slot(request: Any) -> MutableMapping[str, Any] | None:
    """Return the mutable mapping a correlation token can be stored in."""
    if request is None:
        return None
    if isinstance(request, MutableMapping):
        return request
    for attr in ("scope", "extensions"):
        slot = getattr(request, attr, None)
        if isinstance(slot, MutableMapping):
            return slot
    return None


class CorrelationRegistry:
    """Bounded association table from request token to CorrelationEntry.

    Entries are removed when recalled by the paired response. Requests whose
    response is never logged are evicted oldest-first once ``max_entries``
    is exceeded, so the table cannot grow without bound.

    Example:
        >>> registry = CorrelationRegistry()
        >>> request = {"method": "GET", "url": "/orders"}
        >>> registry.remember(request, CorrelationEntry("r-1", "t-1", 0.0))
        >>> registry.recall(request).request_id
        'r-1'
        >>> registry.recall(request) is None
        True
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CorrelationEntry] = OrderedDict()
        self._lock = threading.Lock()

    def remember(self, request: Any, entry: CorrelationEntry) -> str | None:
        """Store ``entry`` for ``request``.

        Returns:
            The token attached to the request, or None if the request offers
            no slot to attach one
        """
        slot = token_slot(request)
        if slot is None:
            return None

        token = slot.get(CORRELATION_TOKEN_KEY)
        if not isinstance(token, str):
            token = generate_uuid()
            slot[CORRELATION_TOKEN_KEY] = token

        with self._lock:
            self._entries[token] = entry
            self._entries.move_to_end(token)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return token

    def peek(self, request: Any) -> CorrelationEntry | None:
        """Look up the entry for ``request`` without removing it."""
        token = self._token_for(request)
        if token is None:
            return None
        with self._lock:
            return self._entries.get(token)

    def recall(self, request: Any) -> CorrelationEntry | None:
        """Remove and return the entry stored for ``request``, if any."""
        token = self._token_for(request)
        if token is None:
            return None
        with self._lock:
            return self._entries.pop(token, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _token_for(request: Any) -> str | None:
        slot = token_slot(request)
        if slot is None:
            return None
        token = slot.get(CORRELATION_TOKEN_KEY)
        return token if isinstance(token, str) else None
