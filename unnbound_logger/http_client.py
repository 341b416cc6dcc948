"""HTTP client with automatic trace ID propagation and logging.

This module provides httpx clients that inject the active trace ID into
outgoing requests and log each request/response pair, so calls to other
services can be correlated with the inbound request that caused them.

Example:
    >>> from unnbound_logger.http_client import get_traced_client
    >>>
    >>> async with get_traced_client() as client:
    ...     response = await client.get("http://api.example.com/data")
    ...     # Request carries the unnbound-trace-id header and is logged
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from unnbound_logger.context import trace_context
from unnbound_logger.logger import UnnboundLogger, get_default_logger


class OutboundTraceInterceptor:
    """Trace header injection and logging for outbound httpx requests.

    Shared by the traced clients and :func:`trace_event_hooks`.

    Args:
        logger: Logger to write records to (default: the process-wide logger)
    """

    def __init__(self, logger: UnnboundLogger | None = None) -> None:
        self._logger = logger

    @property
    def logger(self) -> UnnboundLogger:
        return self._logger if self._logger is not None else get_default_logger()

    def on_request(self, request: httpx.Request) -> bool:
        """Inject the trace header and log the request.

        The header is only added when a trace scope is active.

        Returns:
            False if the URL is on the outbound ignore list, True otherwise
        """
        logger = self.logger
        if logger.should_ignore_outbound(str(request.url)):
            return False

        trace_id = trace_context.get_trace_id()
        if trace_id:
            request.headers[logger.trace_header_key] = trace_id
        logger.http_request(request, trace_id=trace_id)
        return True

    def on_response(self, response: httpx.Response, request: httpx.Request | None = None) -> None:
        """Log the response paired with its request."""
        logger = self.logger
        if request is None:
            request = response.request
        if logger.should_ignore_outbound(str(request.url)):
            return
        logger.http_response(response, request)

    def on_error(self, request: httpx.Request, exc: BaseException) -> None:
        """Log a transport failure that produced no response."""
        logger = self.logger
        entry = logger.registry.recall(request)
        logger.error(
            f"{request.method} {request.url} failed: {type(exc).__name__}",
            trace_id=entry.trace_id if entry else None,
            request_id=entry.request_id if entry else None,
            error=exc,
            url=str(request.url),
            method=request.method,
        )


class TracedHTTPXClient(httpx.AsyncClient):
    """HTTP client that adds trace IDs to requests and logs them.

    Extends httpx.AsyncClient to inject the current trace ID from context
    into all outgoing requests and to log each request and its response.

    Args:
        *args: httpx.AsyncClient positional arguments
        logger: Logger to write records to (default: the process-wide logger)
        **kwargs: httpx.AsyncClient keyword arguments

    Example:
        >>> from unnbound_logger.context import trace_context
        >>>
        >>> async def fetch() -> httpx.Response:
        ...     async with TracedHTTPXClient() as client:
        ...         # This request will include unnbound-trace-id: request-123
        ...         return await client.get("http://api.example.com/data")
        >>> response = asyncio.run(trace_context.run("request-123", fetch))
    """

    def __init__(self, *args: Any, logger: UnnboundLogger | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.interceptor = OutboundTraceInterceptor(logger)

    async def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        """Send a built request with trace ID header and logging.

        Overrides the base send method, which every request helper
        (``get``, ``post``, ``request``, ``stream``) goes through.

        Args:
            request: Request to send
            **kwargs: httpx.AsyncClient.send parameters

        Returns:
            HTTP response

        Raises:
            httpx.RequestError: Transport failures, after they are logged
        """
        traced = self.interceptor.on_request(request)
        try:
            response = await super().send(request, **kwargs)
        except httpx.RequestError as exc:
            if traced:
                self.interceptor.on_error(request, exc)
            raise

        if traced:
            self.interceptor.on_response(response, request)
        return response


class TracedHTTPXSyncClient(httpx.Client):
    """Synchronous HTTP client with trace ID propagation and logging.

    Synchronous version of TracedHTTPXClient for use in non-async code.

    Example:
        >>> with TracedHTTPXSyncClient() as client:
        ...     response = client.get("http://api.example.com/data")
    """

    def __init__(self, *args: Any, logger: UnnboundLogger | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.interceptor = OutboundTraceInterceptor(logger)

    def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        """Send a built request with trace ID header and logging.

        Args:
            request: Request to send
            **kwargs: httpx.Client.send parameters

        Returns:
            HTTP response
        """
        traced = self.interceptor.on_request(request)
        try:
            response = super().send(request, **kwargs)
        except httpx.RequestError as exc:
            if traced:
                self.interceptor.on_error(request, exc)
            raise

        if traced:
            self.interceptor.on_response(response, request)
        return response


def trace_event_hooks(
    logger: UnnboundLogger | None = None,
    *,
    is_async: bool = False,
) -> dict[str, list[Callable[..., Any]]]:
    """Event hooks adding tracing to an existing httpx client.

    Response hooks run before the body is read, so response records made
    through hooks carry no body.

    Args:
        logger: Logger to write records to (default: the process-wide logger)
        is_async: Build coroutine hooks for httpx.AsyncClient

    Returns:
        Mapping suitable for the ``event_hooks`` client argument

    Example:
        >>> client = httpx.AsyncClient(event_hooks=trace_event_hooks(logger, is_async=True))
    """
    interceptor = OutboundTraceInterceptor(logger)

    if is_async:

        async def on_request_async(request: httpx.Request) -> None:
            interceptor.on_request(request)

        async def on_response_async(response: httpx.Response) -> None:
            interceptor.on_response(response)

        return {"request": [on_request_async], "response": [on_response_async]}

    def on_request(request: httpx.Request) -> None:
        interceptor.on_request(request)

    def on_response(response: httpx.Response) -> None:
        interceptor.on_response(response)

    return {"request": [on_request], "response": [on_response]}


def get_traced_client(
    base_url: str | None = None,
    timeout: float = 10.0,
    logger: UnnboundLogger | None = None,
    **kwargs: Any,
) -> TracedHTTPXClient:
    """Create a traced async HTTP client.

    Args:
        base_url: Base URL for all requests (optional)
        timeout: Request timeout in seconds
        logger: Logger to write records to
        **kwargs: Additional httpx.AsyncClient parameters

    Returns:
        Configured TracedHTTPXClient instance

    Example:
        >>> async with get_traced_client(base_url="http://api.example.com") as client:
        ...     response = await client.get("/users")
    """
    client_kwargs: dict[str, Any] = {"timeout": timeout, **kwargs}
    if base_url is not None:
        client_kwargs["base_url"] = base_url

    return TracedHTTPXClient(logger=logger, **client_kwargs)


def get_traced_sync_client(
    base_url: str | None = None,
    timeout: float = 10.0,
    logger: UnnboundLogger | None = None,
    **kwargs: Any,
) -> TracedHTTPXSyncClient:
    """Create a traced synchronous HTTP client.

    Args:
        base_url: Base URL for all requests (optional)
        timeout: Request timeout in seconds
        logger: Logger to write records to
        **kwargs: Additional httpx.Client parameters

    Returns:
        Configured TracedHTTPXSyncClient instance
    """
    client_kwargs: dict[str, Any] = {"timeout": timeout, **kwargs}
    if base_url is not None:
        client_kwargs["base_url"] = base_url

    return TracedHTTPXSyncClient(logger=logger, **client_kwargs)


async def traced_get(url: str, logger: UnnboundLogger | None = None, **kwargs: Any) -> httpx.Response:
    """Convenience function for traced GET request.

    Example:
        >>> response = await traced_get("http://api.example.com/users")
    """
    async with get_traced_client(logger=logger) as client:
        return await client.get(url, **kwargs)


async def traced_post(url: str, logger: UnnboundLogger | None = None, **kwargs: Any) -> httpx.Response:
    """Convenience function for traced POST request.

    Example:
        >>> response = await traced_post(
        ...     "http://api.example.com/users",
        ...     json={"name": "Alice"}
        ... )
    """
    async with get_traced_client(logger=logger) as client:
        return await client.post(url, **kwargs)
