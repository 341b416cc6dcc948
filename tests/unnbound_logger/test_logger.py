"""Tests for the UnnboundLogger facade.

Tests verify:
- General records carry a non-null trace id, inside and outside scopes
- Structured fields merge without clobbering reserved fields
- HTTP request/response records are correlated and get status-based levels
- SFTP and DB transaction records
- Logging calls never raise
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

import pytest

from unnbound_logger.config import LoggerSettings
from unnbound_logger.context import trace_context
from unnbound_logger.engines import MemoryEngine, StdlibLoggingEngine
from unnbound_logger.exceptions import ConfigurationError
from unnbound_logger.http_views import RequestView, ResponseView
from unnbound_logger.logger import UnnboundLogger, serialize_error
from unnbound_logger.sanitizer import REDACTED
from unnbound_logger.types import DbQueryTransaction, LogLevel


class TestConstruction:
    def test_defaults_from_settings(self, settings: LoggerSettings) -> None:
        settings = settings.model_copy(update={"service_name": "orders", "workflow_id": "wf-1"})
        engine = MemoryEngine()
        logger = UnnboundLogger(engine=engine, settings=settings)

        logger.info("hello")

        entry = engine.entries[0]
        assert entry["service"] == "orders"
        assert entry["workflowId"] == "wf-1"
        assert logger.trace_header_key == "unnbound-trace-id"

    def test_builds_stdlib_engine_by_default(self, settings: LoggerSettings) -> None:
        logger = UnnboundLogger(settings=settings)

        assert isinstance(logger.engine, StdlibLoggingEngine)

    def test_invalid_level_raises(self, settings: LoggerSettings) -> None:
        with pytest.raises(ConfigurationError):
            UnnboundLogger(settings=settings, default_level="loud")

    def test_invalid_engine_raises(self, settings: LoggerSettings) -> None:
        with pytest.raises(ConfigurationError):
            UnnboundLogger(settings=settings, engine=object())  # type: ignore[arg-type]

    def test_unknown_engine_name_raises(self, settings: LoggerSettings) -> None:
        settings = settings.model_copy(update={"log_engine": "loguru"})

        with pytest.raises(ConfigurationError, match="Unknown log engine"):
            UnnboundLogger(settings=settings)

    def test_trace_header_key_is_lowercased(self, settings: LoggerSettings) -> None:
        logger = UnnboundLogger(engine=MemoryEngine(), settings=settings, trace_header_key="X-Trace-ID")

        assert logger.trace_header_key == "x-trace-id"


class TestGeneralRecords:
    def test_trace_id_generated_outside_scope(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.info("no scope")

        entry = engine.entries[0]
        assert entry["traceId"]
        assert len(entry["traceId"]) == 36
        assert entry["type"] == "general"
        assert entry["level"] == "info"
        assert entry["message"] == "no scope"
        assert entry["service"] == "test-service"

    def test_trace_id_from_scope(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        with trace_context.scope("scope-1"):
            logger.warn("inside")

        assert engine.entries[0]["traceId"] == "scope-1"
        assert engine.entries[0]["level"] == "warn"

    def test_explicit_trace_id_wins(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        with trace_context.scope("scope-1"):
            logger.info("explicit", trace_id="explicit-1")

        assert engine.entries[0]["traceId"] == "explicit-1"

    def test_structured_message_merges_without_level_collision(
        self, logger: UnnboundLogger, engine: MemoryEngine
    ) -> None:
        logger.info({"event": "login", "userId": "u-1", "level": "custom"})

        entry = engine.entries[0]
        assert entry["event"] == "login"
        assert entry["userId"] == "u-1"
        assert entry["level"] == "info"
        assert entry["context"] == {"level": "custom"}

    def test_structured_message_text(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.info({"message": "User logged in", "userId": "u-1"})

        assert engine.entries[0]["message"] == "User logged in"
        assert engine.entries[0]["userId"] == "u-1"

    def test_extra_fields(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.info("Invoice sent", invoice_id="inv-1", traceId="forged")

        entry = engine.entries[0]
        assert entry["invoice_id"] == "inv-1"
        assert entry["traceId"] != "forged"
        assert entry["context"] == {"traceId": "forged"}

    def test_exception_message(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.error(ValueError("card declined"))

        entry = engine.entries[0]
        assert entry["level"] == "error"
        assert entry["message"] == "ValueError: card declined"
        assert entry["error"]["name"] == "ValueError"

    def test_exception_method_attaches_active_exception(
        self, logger: UnnboundLogger, engine: MemoryEngine
    ) -> None:
        try:
            raise KeyError("sku")
        except KeyError:
            logger.exception("Lookup failed")

        entry = engine.entries[0]
        assert entry["message"] == "Lookup failed"
        assert entry["error"]["name"] == "KeyError"
        assert "Traceback" in entry["error"]["stack"]

    def test_level_threshold(self, settings: LoggerSettings) -> None:
        engine = MemoryEngine(level="warn")
        logger = UnnboundLogger(engine=engine, settings=settings)

        logger.debug("dropped")
        logger.info("dropped")
        logger.warning("kept")

        assert [entry["message"] for entry in engine.entries] == ["kept"]

    def test_log_with_stdlib_level_spelling(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.log("critical", "disk full")

        assert engine.entries[0]["level"] == "error"

    def test_child_adds_static_fields(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        child = logger.child(component="orders")

        child.info("created", order_id=1)
        logger.info("parent")

        assert engine.entries[0]["component"] == "orders"
        assert engine.entries[0]["order_id"] == 1
        assert "component" not in engine.entries[1]

    @pytest.mark.asyncio
    async def test_concurrent_tasks_log_own_trace_ids(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        async def handler(name: str) -> None:
            for step in range(3):
                await asyncio.sleep(0)
                logger.info(f"{name}-{step}", task=name)

        await asyncio.gather(
            trace_context.run("trace-a", handler, "a"),
            trace_context.run("trace-b", handler, "b"),
        )

        for entry in engine.entries:
            assert entry["traceId"] == f"trace-{entry['task']}"


class TestNeverRaises:
    def test_engine_failure_is_reported(
        self, settings: LoggerSettings, caplog: pytest.LogCaptureFixture
    ) -> None:
        class BrokenEngine(MemoryEngine):
            def _write(self, level: LogLevel, entry: dict) -> None:
                raise OSError("disk gone")

        logger = UnnboundLogger(engine=BrokenEngine(), settings=settings)

        with caplog.at_level(logging.WARNING, logger="unnbound_logger.internal"):
            logger.info("lost")

        assert "Failed to emit general record" in caplog.text

    def test_incomplete_sftp_transaction_is_still_logged(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.sftp_transaction({"operation": "download", "path": "/x", "status": "failure"})

        (entry,) = engine.entries
        assert entry["type"] == "sftpTransaction"
        assert entry["level"] == "error"
        assert entry["sftpTransaction"]["host"] is None
        assert entry["sftpTransaction"]["username"] is None
        assert entry["sftpTransaction"]["path"] == "/x"

    def test_malformed_db_fields_are_nulled(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.db_query_transaction({"instance": "db1", "vendor": "oracle", "status": "failure", "rowsReturned": -1})

        (entry,) = engine.entries
        assert entry["level"] == "error"
        assert entry["dbQueryTransaction"]["instance"] == "db1"
        assert entry["dbQueryTransaction"]["vendor"] is None
        assert entry["dbQueryTransaction"]["rowsReturned"] is None

    def test_level_keyword_on_wrapper(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.info("hello", level="error")

        assert engine.entries[0]["level"] == "error"
        assert engine.entries[0]["message"] == "hello"

    def test_level_keyword_on_log(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.log("info", "hello", level="warn")
        logger.log(level="debug", message="by keyword")

        first, second = engine.entries
        assert first["level"] == "warn"
        assert second["level"] == "debug"
        assert second["message"] == "by keyword"

    def test_message_keyword_on_wrapper(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.warn(message="only keyword")
        logger.info("positional", message="shadowed")

        first, second = engine.entries
        assert first["message"] == "only keyword"
        assert second["message"] == "positional"
        assert second["context"] == {"message": "shadowed"}

    def test_unknown_level_falls_back(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.log("loud", "still logged")

        assert engine.entries[0]["level"] == "info"

    def test_unprintable_message(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        class Weird:
            def __str__(self) -> str:
                raise RuntimeError("no str")

        logger.info(Weird())

        assert engine.entries[0]["message"].startswith("<")


class TestHttpRecords:
    def test_request_response_correlation(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        request = {"method": "get", "url": "/orders?page=2", "headers": {"Authorization": "Bearer x"}}

        ids = logger.http_request(request)
        logger.http_response({"status_code": 200, "body": b'{"ok": true}'}, request)

        request_entry, response_entry = engine.entries
        assert request_entry["type"] == "httpRequest"
        assert response_entry["type"] == "httpResponse"
        assert request_entry["requestId"] == response_entry["requestId"] == ids.request_id
        assert request_entry["traceId"] == response_entry["traceId"] == ids.trace_id
        assert request_entry["httpRequest"]["method"] == "GET"
        assert request_entry["httpRequest"]["query"] == {"page": "2"}
        assert request_entry["httpRequest"]["headers"]["authorization"] == REDACTED
        assert response_entry["httpResponse"]["statusCode"] == 200
        assert response_entry["httpResponse"]["statusMessage"] == "OK"
        assert response_entry["httpResponse"]["body"] == {"ok": True}
        assert response_entry["duration"] >= 0
        assert response_entry["message"] == "GET /orders?page=2 200 OK"

    def test_correlation_entry_is_consumed(self, logger: UnnboundLogger) -> None:
        request = {"method": "GET", "url": "/"}

        logger.http_request(request)
        assert len(logger.registry) == 1

        logger.http_response({"status_code": 204}, request)
        assert len(logger.registry) == 0

    @pytest.mark.parametrize(
        ("status", "level"),
        [(200, "info"), (302, "info"), (404, "warn"), (499, "warn"), (500, "error"), (503, "error")],
    )
    def test_status_to_level(self, logger: UnnboundLogger, engine: MemoryEngine, status: int, level: str) -> None:
        logger.http_response({"status_code": status}, {"method": "GET", "url": "/"})

        assert engine.entries[0]["level"] == level

    def test_explicit_level_overrides_status(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.http_response({"status_code": 503}, {"method": "GET", "url": "/"}, level="info")

        assert engine.entries[0]["level"] == "info"

    def test_uncorrelated_response_mints_request_id(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.http_response({"status_code": 200}, {"method": "GET", "url": "/"})

        entry = engine.entries[0]
        assert len(entry["requestId"]) == 36
        assert entry["duration"] == 0

    def test_response_options_used_without_stored_entry(
        self, logger: UnnboundLogger, engine: MemoryEngine
    ) -> None:
        start = datetime.now(UTC) - timedelta(milliseconds=50)

        logger.http_response(
            ResponseView(status_code=201),
            RequestView(method="POST", url="/orders"),
            request_id="req-9",
            trace_id="trace-9",
            start_time=start,
        )

        entry = engine.entries[0]
        assert entry["requestId"] == "req-9"
        assert entry["traceId"] == "trace-9"
        assert entry["duration"] >= 50

    def test_explicit_duration(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.http_response({"status_code": 200}, {"url": "/"}, duration=12.5)

        assert engine.entries[0]["duration"] == 12.5

    def test_request_inside_scope_uses_active_trace(self, logger: UnnboundLogger) -> None:
        with trace_context.scope("scope-7"):
            ids = logger.http_request(RequestView(method="GET", url="/"))

        assert ids.trace_id == "scope-7"

    def test_allow_list_policy(self, settings: LoggerSettings) -> None:
        engine = MemoryEngine()
        logger = UnnboundLogger(engine=engine, settings=settings, allowed_headers=["content-type"])

        logger.http_request({"method": "GET", "url": "/", "headers": {"Content-Type": "text/plain", "X-Foo": "1"}})

        assert engine.entries[0]["httpRequest"]["headers"] == {"content-type": "text/plain"}

    def test_ipv4_mapped_client_ip(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.http_request({"method": "GET", "url": "/", "ip": "::ffff:10.1.2.3"})

        assert engine.entries[0]["httpRequest"]["ip"] == "10.1.2.3"


class TestTransactions:
    def test_sftp_failure(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.sftp_transaction(
            {
                "host": "sftp.partner.com",
                "username": "etl",
                "operation": "upload",
                "path": "/in/orders.csv",
                "status": "failure",
            },
            error=ConnectionError("connection reset"),
        )

        entry = engine.entries[0]
        assert entry["type"] == "sftpTransaction"
        assert entry["level"] == "error"
        assert entry["duration"] == 0
        assert entry["sftpTransaction"]["host"] == "sftp.partner.com"
        assert entry["error"]["name"] == "ConnectionError"
        assert entry["requestId"]

    def test_sftp_success_is_info(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.sftp_transaction(
            {"host": "h", "username": "u", "operation": "download", "path": "/out/a.csv"},
            duration=30.0,
        )

        entry = engine.entries[0]
        assert entry["level"] == "info"
        assert entry["duration"] == 30.0

    def test_db_query(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.db_query_transaction(
            DbQueryTransaction(
                instance="orders-db",
                vendor="postgres",
                query="UPDATE orders SET status = 'paid' WHERE id = 17",
                rows_affected=1,
            ),
            start_time=datetime.now(UTC),
        )

        entry = engine.entries[0]
        assert entry["type"] == "dbQueryTransaction"
        assert entry["level"] == "info"
        assert entry["dbQueryTransaction"]["query"] == "UPDATE orders SET status = ? WHERE id = ?"
        assert entry["dbQueryTransaction"]["rowsAffected"] == 1

    def test_db_failure_with_explicit_level(self, logger: UnnboundLogger, engine: MemoryEngine) -> None:
        logger.db_query_transaction(
            {"instance": "db", "vendor": "mysql", "status": "failure"},
            level="warn",
        )

        assert engine.entries[0]["level"] == "warn"


class TestSerializeError:
    def test_mapping(self) -> None:
        error = serialize_error({"name": "Timeout", "message": "took too long"})

        assert error is not None
        assert error.name == "Timeout"
        assert error.stack is None

    def test_plain_value(self) -> None:
        error = serialize_error("boom")

        assert error is not None
        assert error.message == "boom"
