"""Tests for the record builder and HTTP views."""

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse

from unnbound_logger.context import trace_context
from unnbound_logger.http_views import RequestView, describe_request, describe_response
from unnbound_logger.records import (
    RecordBuilder,
    RecordDefaults,
    level_for_status,
    resolve_trace_id,
    status_message,
    to_meta,
)
from unnbound_logger.types import LogLevel, PlainText, StructuredFields


class TestHelpers:
    def test_resolve_trace_id_order(self) -> None:
        assert resolve_trace_id("explicit") == "explicit"
        with trace_context.scope("active"):
            assert resolve_trace_id() == "active"
        assert len(resolve_trace_id()) == 36

    def test_status_message(self) -> None:
        assert status_message(404) == "Not Found"
        assert status_message(599) is None
        assert status_message(None) is None

    def test_level_for_status(self) -> None:
        assert level_for_status(500) is LogLevel.ERROR
        assert level_for_status(400) is LogLevel.WARN
        assert level_for_status(399) is LogLevel.INFO
        assert level_for_status(None) is LogLevel.INFO


class TestRecordBuilder:
    def test_defaults_are_stamped(self) -> None:
        builder = RecordBuilder(RecordDefaults(service="svc", environment="prod", service_id="s-1", deployment_id="d-1"))

        record, fields = builder.general(LogLevel.INFO, PlainText("hi"))

        wire = to_meta(record, fields)
        assert wire["service"] == "svc"
        assert wire["environment"] == "prod"
        assert wire["serviceId"] == "s-1"
        assert wire["deploymentId"] == "d-1"

    def test_workflow_override(self) -> None:
        builder = RecordBuilder(RecordDefaults(workflow_id="static"))

        record, _ = builder.general(LogLevel.INFO, PlainText("hi"), workflow_id="per-call")

        assert record.workflow_id == "per-call"

    def test_to_meta_collisions_go_to_context(self) -> None:
        record, fields = RecordBuilder().general(LogLevel.INFO, StructuredFields({"event": "login", "level": "x"}))

        meta = to_meta(record, fields)

        assert meta["event"] == "login"
        assert meta["level"] == "info"
        assert meta["context"] == {"level": "x"}

    def test_request_body_is_truncated(self) -> None:
        builder = RecordBuilder(max_body_bytes=4)

        payload = builder.http_request_payload(RequestView(method="post", url="/upload"), body=b"0123456789")

        assert payload.method == "POST"
        assert payload.body == "0123...[truncated]"


class TestDescribeRequest:
    def test_starlette_request(self) -> None:
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/orders",
            "query_string": b"page=1",
            "headers": [(b"content-type", b"application/json")],
            "client": ("::ffff:127.0.0.1", 5000),
            "server": ("testserver", 80),
            "scheme": "http",
        }

        view = describe_request(Request(scope))

        assert view.method == "POST"
        assert view.url == "/orders?page=1"
        assert view.path == "/orders"
        assert view.client_ip == "::ffff:127.0.0.1"
        assert view.headers["content-type"] == "application/json"

    def test_httpx_request(self) -> None:
        view = describe_request(httpx.Request("PUT", "https://api.example.com/items/1", json={"a": 1}))

        assert view.method == "PUT"
        assert view.url == "https://api.example.com/items/1"
        assert view.body == b'{"a":1}' or view.body == b'{"a": 1}'

    def test_object_fallback(self) -> None:
        class Legacy:
            method = "GET"
            url = "/legacy"
            ip = "10.0.0.1"

        view = describe_request(Legacy())

        assert view.url == "/legacy"
        assert view.client_ip == "10.0.0.1"


class TestDescribeResponse:
    def test_httpx_response(self) -> None:
        request = httpx.Request("GET", "https://api.example.com")
        response = httpx.Response(201, content=b"created", request=request)

        view = describe_response(response)

        assert view.status_code == 201
        assert view.body == b"created"
        assert view.request is request

    def test_httpx_response_without_request(self) -> None:
        assert describe_response(httpx.Response(200)).request is None

    def test_starlette_response(self) -> None:
        view = describe_response(JSONResponse({"ok": True}, status_code=202))

        assert view.status_code == 202
        assert view.body == b'{"ok":true}'

    def test_mapping_status_aliases(self) -> None:
        assert describe_response({"statusCode": "404"}).status_code == 404
        assert describe_response({"status": 500}).status_code == 500
