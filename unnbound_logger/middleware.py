"""ASGI middleware for trace ID scoping and HTTP request/response logging.

This module provides middleware that extracts the trace ID from incoming
requests (or generates one), runs the downstream application inside a trace
scope, echoes the ID in the response headers and logs the request/response
pair.

Example:
    >>> from fastapi import FastAPI
    >>> from unnbound_logger import UnnboundLogger
    >>> from unnbound_logger.middleware import add_trace_middleware
    >>>
    >>> app = FastAPI()
    >>> add_trace_middleware(app, UnnboundLogger(service_name="orders"))
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Request, Response
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from unnbound_logger.context import TRACE_ID_HEADER, generate_trace_id, trace_context
from unnbound_logger.http_views import ResponseView
from unnbound_logger.ids import now
from unnbound_logger.logger import UnnboundLogger, get_default_logger


def _header_value(scope: Scope, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value.decode("latin-1")
    return None


class TraceMiddleware:
    """ASGI middleware managing trace scope and HTTP logging.

    Works with any ASGI application, not just FastAPI. For each HTTP request
    it:

    1. Skips requests whose path matches the logger's inbound ignore list
    2. Reads the trace header or generates a new ID
    3. Runs the application inside ``trace_context.run(trace_id, ...)``
    4. Adds the trace header to the response
    5. With ``log_requests`` enabled, logs the request as soon as its body
       is buffered and the response once its last body chunk is sent

    If the application raises before a response starts, a 500 response
    record carrying the error is logged and the exception propagates.

    Args:
        app: ASGI application to wrap
        logger: Logger to write records to (default: the process-wide logger)
        log_requests: Log request/response records in addition to scoping

    Example:
        >>> from starlette.applications import Starlette
        >>> app = TraceMiddleware(Starlette(), UnnboundLogger())
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: UnnboundLogger | None = None,
        log_requests: bool = True,
    ) -> None:
        self.app = app
        self.logger = logger if logger is not None else get_default_logger()
        self.log_requests = log_requests
        self._header_key = self.logger.trace_header_key.encode("latin-1")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.logger.should_ignore_inbound(scope.get("path")):
            await self.app(scope, receive, send)
            return

        trace_id = _header_value(scope, self._header_key) or generate_trace_id()
        handler = self._traced if self.log_requests else self._scoped
        await trace_context.run(trace_id, handler, scope, receive, send, trace_id)

    def _with_trace_header(self, message: Message, trace_id: str) -> Message:
        headers = [
            (key, value) for key, value in message.get("headers", []) if key.lower() != self._header_key
        ]
        headers.append((self._header_key, trace_id.encode("latin-1")))
        return {**message, "headers": headers}

    async def _scoped(self, scope: Scope, receive: Receive, send: Send, trace_id: str) -> None:
        async def send_with_trace_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                message = self._with_trace_header(message, trace_id)
            await send(message)

        await self.app(scope, receive, send_with_trace_id)

    async def _traced(self, scope: Scope, receive: Receive, send: Send, trace_id: str) -> None:
        start_time = now()

        # Buffer the request body so it can be logged, then replay it
        pending: list[Message] = []
        chunks: list[bytes] = []
        while True:
            message = await receive()
            pending.append(message)
            if message["type"] != "http.request":
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break

        async def replay_receive() -> Message:
            if pending:
                return pending.pop(0)
            return await receive()

        request = Request(scope)
        self.logger.http_request(request, trace_id=trace_id, start_time=start_time, body=b"".join(chunks))

        max_bytes = self.logger.max_body_bytes
        status_code: int | None = None
        response_headers: list[tuple[bytes, bytes]] = []
        response_body: list[bytes] = []
        captured = 0
        logged = False

        def log_response(error: BaseException | None = None) -> None:
            nonlocal logged
            if logged:
                return
            logged = True
            self.logger.http_response(
                ResponseView(
                    status_code=status_code if status_code is not None else 500,
                    headers=Headers(raw=response_headers),
                    body=b"".join(response_body),
                ),
                request,
                trace_id=trace_id,
                error=error,
            )

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, response_headers, captured
            if message["type"] == "http.response.start":
                message = self._with_trace_header(message, trace_id)
                status_code = message["status"]
                response_headers = list(message["headers"])
            elif message["type"] == "http.response.body":
                chunk = message.get("body", b"")
                # Capture one byte past the limit so truncation is detected
                if chunk and captured <= max_bytes:
                    response_body.append(chunk[: max_bytes + 1 - captured])
                    captured += len(response_body[-1])
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                log_response()

        try:
            await self.app(scope, replay_receive, send_wrapper)
        except Exception as exc:
            log_response(exc)
            raise


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Middleware that scopes each request to its trace ID.

    The minimal variant of :class:`TraceMiddleware`: extracts the trace ID
    from the request header (or generates one), makes it the active trace
    ID while the request is handled, and echoes it in the response header.
    No request/response records are written. Paths on the logger's inbound
    ignore list pass through untouched.

    Example:
        >>> app = FastAPI()
        >>> app.add_middleware(TraceIDMiddleware)
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: UnnboundLogger | None = None,
        header_key: str | None = None,
    ) -> None:
        super().__init__(app)
        self.logger = logger
        if header_key is None:
            header_key = logger.trace_header_key if logger is not None else TRACE_ID_HEADER
        self.header_key = header_key.lower()

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        """Process request and inject trace ID.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            HTTP response with trace ID header added
        """
        if self.logger is not None and self.logger.should_ignore_inbound(request.url.path):
            return await call_next(request)

        trace_id = request.headers.get(self.header_key) or generate_trace_id()

        with trace_context.scope(trace_id):
            response = await call_next(request)

        response.headers[self.header_key] = trace_id
        return response


def add_trace_middleware(app: FastAPI, logger: UnnboundLogger | None = None, **kwargs: Any) -> None:
    """Add :class:`TraceMiddleware` to a FastAPI/Starlette application.

    Should be called during application setup.

    Args:
        app: FastAPI application instance
        logger: Logger to write records to
        **kwargs: Further TraceMiddleware options (``log_requests``)

    Example:
        >>> app = FastAPI()
        >>> add_trace_middleware(app, logger, log_requests=False)
    """
    app.add_middleware(TraceMiddleware, logger=logger, **kwargs)
