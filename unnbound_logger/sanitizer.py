"""Redaction and normalisation helpers for HTTP and database log payloads."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"

# Never emitted verbatim, whichever header policy is in force
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "x-auth-token",
        "x-csrf-token",
    }
)

# Allow-list used when a logger is configured with allowed_headers=DEFAULT_ALLOWED_HEADERS
DEFAULT_ALLOWED_HEADERS = frozenset(
    {
        "content-type",
        "accept",
        "user-agent",
        "host",
        "x-forwarded-for",
        "x-request-id",
        "content-length",
        "cache-control",
    }
)

_SENSITIVE_FIELD_TOKENS = ("password", "passwd", "secret", "token", "api_key", "apikey", "authorization")
_SENSITIVE_KEY = r"[^\"=&;]*(?:password|passwd|secret|token|api[_-]?key|authorization)[^\"=&;]*"
_SENSITIVE_JSON_VALUE = re.compile(
    r'("' + _SENSITIVE_KEY + r'"\s*:\s*)(?:"(?:[^"\\]|\\.)*"?|[^,}\]\s]+)', re.IGNORECASE
)
_SENSITIVE_FORM_VALUE = re.compile(r"((?:^|[&;?])" + _SENSITIVE_KEY + r"=)[^&;]*", re.IGNORECASE)

_IPV4_MAPPED_PREFIX = "::ffff:"

# SQL sanitising: comments, quoted literals, bare numbers
_SQL_LINE_COMMENT = re.compile(r"--[^\n]*")
_SQL_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_SQL_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_SQL_NUMBER_LITERAL = re.compile(r"(?<![\w$.])-?\d+(?:\.\d+)?\b")
_WHITESPACE = re.compile(r"\s+")
MAX_QUERY_LENGTH = 4000


def _header_items(headers: Any) -> Iterable[tuple[Any, Any]]:
    if headers is None:
        return []
    # starlette.datastructures.Headers and httpx.Headers keep repeated values
    multi_items = getattr(headers, "multi_items", None)
    if callable(multi_items):
        return list(multi_items())
    raw = getattr(headers, "raw", None)
    if isinstance(raw, list):
        return raw
    if isinstance(headers, Mapping):
        return list(headers.items())
    try:
        return [(key, value) for key, value in headers]
    except (TypeError, ValueError):
        return []


def _to_text(value: Any) -> str:
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("latin-1")
    if isinstance(value, list | tuple):
        return ", ".join(_to_text(item) for item in value)
    return str(value)


def filter_headers(headers: Any, allowed: Iterable[str] | None = None) -> dict[str, str]:
    """Apply the header policy to a header collection.

    With ``allowed`` given, only headers on that allow-list are kept. Without
    it, all headers are kept and sensitive ones are replaced by
    ``[REDACTED]``. Sensitive headers are redacted under both policies.

    Args:
        headers: Mapping, starlette/httpx Headers, or ASGI ``(bytes, bytes)`` pairs
        allowed: Optional allow-list of lower-case header names

    Returns:
        Lower-cased header names mapped to string values. Repeated headers
        are joined with ``", "``.

    Example:
        >>> filter_headers({"Authorization": "Bearer abc", "Accept": "*/*"})
        {'authorization': '[REDACTED]', 'accept': '*/*'}
    """
    allow = {name.lower() for name in allowed} if allowed is not None else None
    filtered: dict[str, str] = {}

    for raw_key, raw_value in _header_items(headers):
        key = _to_text(raw_key).lower()
        if allow is not None and key not in allow:
            continue
        value = REDACTED if key in SENSITIVE_HEADERS else _to_text(raw_value)
        if key in filtered and value != REDACTED:
            filtered[key] = f"{filtered[key]}, {value}"
        else:
            filtered[key] = value

    return filtered


def normalize_ip(ip: str | None) -> str | None:
    """Strip the IPv4-mapped IPv6 prefix so ``::ffff:10.0.0.1`` logs as ``10.0.0.1``.

    Example:
        >>> normalize_ip("::ffff:192.168.1.20")
        '192.168.1.20'
        >>> normalize_ip("2001:db8::1")
        '2001:db8::1'
    """
    if not ip:
        return None
    ip = str(ip)
    if ip.lower().startswith(_IPV4_MAPPED_PREFIX):
        candidate = ip[len(_IPV4_MAPPED_PREFIX) :]
        if candidate.count(".") == 3:
            return candidate
    return ip


def safe_json_parse(data: Any) -> Any:
    """Parse JSON text, returning the input unchanged when it is not JSON."""
    if isinstance(data, str):
        try:
            return json.loads(data)
        except ValueError:
            return data
    return data


def redact_text(text: str) -> str:
    """Mask credential-like values in JSON or form-encoded text.

    Used for bodies that are too large (or too incomplete) to be parsed and
    redacted field by field.

    Example:
        >>> redact_text('{"password": "hunter2", "note": "hi"}')
        '{"password": "[REDACTED]", "note": "hi"}'
    """
    text = _SENSITIVE_JSON_VALUE.sub(rf'\g<1>"{REDACTED}"', text)
    return _SENSITIVE_FORM_VALUE.sub(rf"\g<1>{REDACTED}", text)


def _truncate(text: str, max_bytes: int) -> str:
    head = text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")
    return f"{head}...[truncated]"


def decode_body(body: Any, max_bytes: int | None = None) -> Any:
    """Turn a captured request/response body into a loggable value.

    Bytes are decoded as UTF-8 (undecodable sequences replaced) and parsed as
    JSON when possible. Bodies longer than ``max_bytes`` (measured in UTF-8
    bytes for text too) are masked with :func:`redact_text`, truncated and
    logged as text.
    """
    if body is None:
        return None
    if isinstance(body, bytes | bytearray | memoryview):
        raw = bytes(body)
        if not raw:
            return None
        size = len(raw)
        text = raw.decode("utf-8", errors="replace")
    elif isinstance(body, str):
        size = len(body.encode("utf-8"))
        text = body
    else:
        return redact_fields(body)

    if max_bytes is not None and size > max_bytes:
        return _truncate(redact_text(text), max_bytes)
    return redact_fields(safe_json_parse(text))


def _is_sensitive_field(key: str) -> bool:
    lowered = key.lower().replace("-", "_")
    return any(token in lowered for token in _SENSITIVE_FIELD_TOKENS)


def redact_fields(value: Any) -> Any:
    """Recursively mask values stored under credential-like keys.

    Example:
        >>> redact_fields({"user": "ann", "password": "hunter2"})
        {'user': 'ann', 'password': '[REDACTED]'}
    """
    if isinstance(value, Mapping):
        return {
            key: REDACTED if _is_sensitive_field(str(key)) else redact_fields(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_fields(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact_fields(item) for item in value)
    return value


def _mask_document(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _mask_document(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_mask_document(item) for item in value]
    return "?"


def sanitize_query(query: Any) -> str | None:
    """Strip literals from a query so it can be logged safely.

    SQL text has comments removed, quoted strings and numbers replaced with
    ``?`` and whitespace collapsed. Document queries (MongoDB filters given
    as mappings) keep their structure with every leaf value replaced.

    Example:
        >>> sanitize_query("SELECT * FROM users WHERE email = 'a@b.c' AND id = 42")
        'SELECT * FROM users WHERE email = ? AND id = ?'
    """
    if query is None:
        return None
    if isinstance(query, Mapping | list):
        text = json.dumps(_mask_document(query), sort_keys=True)
    else:
        text = str(query)
        text = _SQL_BLOCK_COMMENT.sub(" ", text)
        text = _SQL_LINE_COMMENT.sub(" ", text)
        text = _SQL_STRING_LITERAL.sub("?", text)
        text = _SQL_NUMBER_LITERAL.sub("?", text)
        text = _WHITESPACE.sub(" ", text).strip()

    if not text:
        return None
    if len(text) > MAX_QUERY_LENGTH:
        text = text[:MAX_QUERY_LENGTH] + "..."
    return text
