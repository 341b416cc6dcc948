"""Read-only views over framework request and response objects.

The logger only needs a handful of attributes from a request (method, URL,
headers, client address, body) and a response (status, headers, body). These
helpers read them from Starlette/FastAPI and httpx objects, from plain
mappings, or from anything exposing similarly named attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from starlette.requests import HTTPConnection
from starlette.responses import Response as StarletteResponse


@dataclass
class RequestView:
    """Normalised request data.

    ``extensions`` is the mutable slot the correlation token is stored in;
    the ASGI middleware passes the connection scope here so handler code
    holding a Starlette ``Request`` for the same connection shares the token.
    """

    method: str | None = None
    url: str | None = None
    path: str | None = None
    headers: Any = None
    client_ip: str | None = None
    body: Any = None
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResponseView:
    status_code: int | None = None
    headers: Any = None
    body: Any = None
    request: Any = None


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return None


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def describe_request(request: Any) -> RequestView:
    """Build a RequestView from a supported request object.

    Starlette request bodies can only be read asynchronously, so their body
    is left empty here; pass ``body=`` to the logger to include it.
    """
    if isinstance(request, RequestView):
        return request

    if isinstance(request, HTTPConnection):
        url = request.url
        full_path = url.path + (f"?{url.query}" if url.query else "")
        client = request.client
        return RequestView(
            method=request.scope.get("method"),
            url=full_path,
            path=url.path,
            headers=request.headers,
            client_ip=client.host if client else None,
        )

    if isinstance(request, httpx.Request):
        try:
            body: Any = request.content
        except httpx.RequestNotRead:
            body = None
        return RequestView(
            method=request.method,
            url=str(request.url),
            path=request.url.path,
            headers=request.headers,
            body=body,
        )

    if isinstance(request, Mapping):
        url = _as_str(_first(request, "url", "originalUrl", "path"))
        return RequestView(
            method=_as_str(_first(request, "method")),
            url=url,
            path=_as_str(_first(request, "path")) or url,
            headers=_first(request, "headers"),
            client_ip=_as_str(_first(request, "client_ip", "ip", "remote_addr")),
            body=_first(request, "body", "json", "data"),
        )

    if request is None:
        return RequestView()

    return RequestView(
        method=_as_str(getattr(request, "method", None)),
        url=_as_str(getattr(request, "url", None)),
        path=_as_str(getattr(request, "path", None)),
        headers=getattr(request, "headers", None),
        client_ip=_as_str(getattr(request, "client_ip", None) or getattr(request, "ip", None)),
        body=getattr(request, "body", None),
    )


def describe_response(response: Any) -> ResponseView:
    """Build a ResponseView from a supported response object."""
    if isinstance(response, ResponseView):
        return response

    if isinstance(response, httpx.Response):
        try:
            body: Any = response.content
        except httpx.ResponseNotRead:
            body = None
        try:
            request = response.request
        except RuntimeError:
            request = None
        return ResponseView(
            status_code=response.status_code,
            headers=response.headers,
            body=body,
            request=request,
        )

    if isinstance(response, StarletteResponse):
        return ResponseView(
            status_code=response.status_code,
            headers=response.headers,
            body=getattr(response, "body", None),
        )

    if isinstance(response, Mapping):
        return ResponseView(
            status_code=_as_int(_first(response, "status_code", "statusCode", "status")),
            headers=_first(response, "headers"),
            body=_first(response, "body", "json", "data"),
            request=_first(response, "request"),
        )

    if response is None:
        return ResponseView()

    return ResponseView(
        status_code=_as_int(getattr(response, "status_code", None) or getattr(response, "status", None)),
        headers=getattr(response, "headers", None),
        body=getattr(response, "body", None),
        request=getattr(response, "request", None),
    )
