"""Tests for the request/response correlation table and id helpers."""

from datetime import UTC, datetime, timedelta

import httpx
from starlette.requests import Request

from unnbound_logger.correlation import (
    CORRELATION_TOKEN_KEY,
    CorrelationEntry,
    CorrelationRegistry,
    token_slot,
)
from unnbound_logger.ids import elapsed_ms, format_timestamp, generate_timestamp


def _entry(request_id: str = "r-1") -> CorrelationEntry:
    return CorrelationEntry(request_id=request_id, trace_id="t-1", start_time=0.0)


class TestTokenSlot:
    def test_mapping_request(self) -> None:
        request = {"method": "GET"}

        assert token_slot(request) is request

    def test_starlette_request_uses_scope(self) -> None:
        scope = {"type": "http", "method": "GET", "path": "/", "headers": []}

        assert token_slot(Request(scope)) is scope

    def test_httpx_request_uses_extensions(self) -> None:
        request = httpx.Request("GET", "https://example.com")

        assert token_slot(request) is request.extensions

    def test_unsupported(self) -> None:
        assert token_slot(None) is None
        assert token_slot("GET /") is None


class TestCorrelationRegistry:
    def test_remember_and_recall(self) -> None:
        registry = CorrelationRegistry()
        request = {"url": "/orders"}

        token = registry.remember(request, _entry())

        assert request[CORRELATION_TOKEN_KEY] == token
        assert registry.peek(request) == _entry()
        assert registry.recall(request) == _entry()
        assert registry.recall(request) is None

    def test_separate_requests_do_not_collide(self) -> None:
        registry = CorrelationRegistry()
        first, second = {}, {}

        registry.remember(first, _entry("r-1"))
        registry.remember(second, _entry("r-2"))

        assert registry.recall(second).request_id == "r-2"  # type: ignore[union-attr]
        assert registry.recall(first).request_id == "r-1"  # type: ignore[union-attr]

    def test_shared_scope_shares_token(self) -> None:
        registry = CorrelationRegistry()
        scope = {"type": "http", "method": "GET", "path": "/", "headers": []}

        registry.remember(Request(scope), _entry())

        assert registry.recall(Request(scope)) == _entry()

    def test_unslotted_request_is_not_stored(self) -> None:
        registry = CorrelationRegistry()

        assert registry.remember("GET /", _entry()) is None
        assert len(registry) == 0

    def test_evicts_oldest_beyond_bound(self) -> None:
        registry = CorrelationRegistry(max_entries=2)
        requests = [{}, {}, {}]

        for index, request in enumerate(requests):
            registry.remember(request, _entry(f"r-{index}"))

        assert len(registry) == 2
        assert registry.recall(requests[0]) is None
        assert registry.recall(requests[2]).request_id == "r-2"  # type: ignore[union-attr]

    def test_clear(self) -> None:
        registry = CorrelationRegistry()
        registry.remember({}, _entry())

        registry.clear()

        assert len(registry) == 0


class TestIds:
    def test_format_timestamp(self) -> None:
        assert format_timestamp(datetime(2025, 1, 1, 12, 0, tzinfo=UTC)) == "2025-01-01T12:00:00.000Z"

    def test_generate_timestamp(self) -> None:
        assert generate_timestamp().endswith("Z")

    def test_elapsed_ms(self) -> None:
        assert elapsed_ms(10.0, end_time=10.25) == 250.0

    def test_elapsed_ms_never_negative(self) -> None:
        assert elapsed_ms(20.0, end_time=10.0) == 0.0

    def test_elapsed_ms_datetime(self) -> None:
        start = datetime.now(UTC) - timedelta(seconds=1)

        assert elapsed_ms(start) >= 1000.0

    def test_elapsed_ms_missing_or_invalid(self) -> None:
        assert elapsed_ms(None) == 0.0
        assert elapsed_ms("yesterday") == 0.0  # type: ignore[arg-type]
