"""Log record builder.

Assembles typed records from caller data, logger defaults and the active
trace context, and flattens them into the ``meta`` dict handed to engines.
Builders never raise on odd input: missing values become ``None`` and
unparseable values are coerced to text.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from urllib.parse import parse_qs, urlsplit

from unnbound_logger.context import generate_trace_id, trace_context
from unnbound_logger.http_views import RequestView, ResponseView
from unnbound_logger.ids import generate_timestamp, generate_uuid
from unnbound_logger.sanitizer import decode_body, filter_headers, normalize_ip
from unnbound_logger.types import (
    RESERVED_FIELDS,
    BaseLogRecord,
    CapturedError,
    DbQueryTransaction,
    DbQueryTransactionLog,
    GeneralLog,
    HttpRequestLog,
    HttpRequestPayload,
    HttpResponseLog,
    HttpResponsePayload,
    LogLevel,
    Message,
    PlainText,
    SerializedError,
    SftpTransaction,
    SftpTransactionLog,
    StructuredFields,
)


@dataclass(frozen=True)
class RecordDefaults:
    """Static values stamped on every record built by one logger."""

    service: str | None = None
    environment: str | None = None
    workflow_id: str | None = None
    service_id: str | None = None
    deployment_id: str | None = None


def resolve_trace_id(explicit: str | None = None) -> str:
    """Explicit id, else the active scope's id, else a fresh one."""
    return explicit or trace_context.get_trace_id() or generate_trace_id()


def status_message(status_code: int | None) -> str | None:
    """Reason phrase for a status code, e.g. ``404`` -> ``Not Found``."""
    if status_code is None:
        return None
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return None


def level_for_status(status_code: int | None) -> LogLevel:
    """Severity derived from an HTTP status code."""
    if status_code is None:
        return LogLevel.INFO
    if status_code >= 500:
        return LogLevel.ERROR
    if status_code >= 400:
        return LogLevel.WARN
    return LogLevel.INFO


def _query_params(url: str | None) -> dict[str, Any] | None:
    if not url or "?" not in url:
        return None
    parsed = parse_qs(urlsplit(url).query, keep_blank_values=True)
    if not parsed:
        return None
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


class RecordBuilder:
    """Builds records for one logger configuration.

    Args:
        defaults: Values stamped on every record
        allowed_headers: Header allow-list; ``None`` selects deny-list redaction
        max_body_bytes: Bodies beyond this size are truncated in records
    """

    def __init__(
        self,
        defaults: RecordDefaults | None = None,
        allowed_headers: Iterable[str] | None = None,
        max_body_bytes: int | None = None,
    ) -> None:
        self.defaults = defaults or RecordDefaults()
        self.allowed_headers = frozenset(h.lower() for h in allowed_headers) if allowed_headers is not None else None
        self.max_body_bytes = max_body_bytes

    def _common(
        self,
        level: LogLevel,
        message: str,
        trace_id: str | None,
        request_id: str | None,
        workflow_id: str | None,
        error: SerializedError | None,
    ) -> dict[str, Any]:
        return {
            "log_id": generate_uuid(),
            "timestamp": generate_timestamp(),
            "level": level,
            "message": message,
            "trace_id": resolve_trace_id(trace_id),
            "request_id": request_id,
            "workflow_id": workflow_id or self.defaults.workflow_id,
            "service_id": self.defaults.service_id,
            "deployment_id": self.defaults.deployment_id,
            "service": self.defaults.service,
            "environment": self.defaults.environment,
            "error": error,
        }

    def general(
        self,
        level: LogLevel,
        message: Message,
        *,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        error: SerializedError | None = None,
    ) -> tuple[GeneralLog, dict[str, Any]]:
        """Build a general record.

        Returns:
            The record and the structured fields still to be merged into it
        """
        fields: dict[str, Any] = {}
        if isinstance(message, PlainText):
            text = message.text
        elif isinstance(message, CapturedError):
            error = error or message.error
            text = f"{message.error.name}: {message.error.message}" if message.error.message else message.error.name
        elif isinstance(message, StructuredFields):
            fields = dict(message.fields)
            candidate = fields.get("message")
            if isinstance(candidate, str):
                text = candidate
                del fields["message"]
            else:
                text = ""
        else:
            text = str(message)

        record = GeneralLog(**self._common(level, text, trace_id, request_id, workflow_id, error))
        return record, fields

    def http_request_payload(self, view: RequestView, body: Any = None) -> HttpRequestPayload:
        return HttpRequestPayload(
            url=view.url,
            method=view.method.upper() if view.method else None,
            headers=filter_headers(view.headers, self.allowed_headers),
            ip=normalize_ip(view.client_ip),
            body=decode_body(body if body is not None else view.body, self.max_body_bytes),
            query=_query_params(view.url),
        )

    def http_request(
        self,
        view: RequestView,
        *,
        level: LogLevel,
        trace_id: str,
        request_id: str,
        workflow_id: str | None = None,
        body: Any = None,
        error: SerializedError | None = None,
    ) -> HttpRequestLog:
        payload = self.http_request_payload(view, body)
        text = " ".join(part for part in (payload.method, payload.url) if part) or "HTTP request"
        return HttpRequestLog(
            **self._common(level, text, trace_id, request_id, workflow_id, error),
            http_request=payload,
        )

    def http_response(
        self,
        response: ResponseView,
        request: RequestView,
        *,
        level: LogLevel,
        trace_id: str,
        request_id: str,
        duration: float,
        workflow_id: str | None = None,
        body: Any = None,
        error: SerializedError | None = None,
    ) -> HttpResponseLog:
        payload = HttpResponsePayload(
            url=request.url,
            method=request.method.upper() if request.method else None,
            headers=filter_headers(response.headers, self.allowed_headers),
            ip=normalize_ip(request.client_ip),
            body=decode_body(body if body is not None else response.body, self.max_body_bytes),
            status_code=response.status_code,
            status_message=status_message(response.status_code),
        )
        parts = [payload.method, payload.url, str(payload.status_code) if payload.status_code is not None else None]
        parts.append(payload.status_message)
        text = " ".join(part for part in parts if part) or "HTTP response"
        return HttpResponseLog(
            **self._common(level, text, trace_id, request_id, workflow_id, error),
            duration=max(0.0, duration),
            http_response=payload,
        )

    def sftp_transaction(
        self,
        transaction: SftpTransaction,
        *,
        level: LogLevel,
        duration: float,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        error: SerializedError | None = None,
    ) -> SftpTransactionLog:
        text = f"SFTP {transaction.operation} {transaction.path} {transaction.status}"
        return SftpTransactionLog(
            **self._common(level, text, trace_id, request_id or generate_uuid(), workflow_id, error),
            duration=max(0.0, duration),
            sftp_transaction=transaction,
        )

    def db_query_transaction(
        self,
        query: DbQueryTransaction,
        *,
        level: LogLevel,
        duration: float,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        error: SerializedError | None = None,
    ) -> DbQueryTransactionLog:
        text = f"{query.vendor} query on {query.instance} {query.status}"
        return DbQueryTransactionLog(
            **self._common(level, text, trace_id, request_id or generate_uuid(), workflow_id, error),
            duration=max(0.0, duration),
            db_query_transaction=query,
        )


def to_meta(record: BaseLogRecord, fields: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Flatten a record into engine ``meta`` and merge extra fields.

    Extra fields land at the top level unless they would overwrite a record
    field, in which case they are kept under ``context``.

    Example:
        >>> record, fields = RecordBuilder().general(LogLevel.INFO, StructuredFields({"event": "login", "level": "x"}))
        >>> meta = to_meta(record, fields)
        >>> meta["event"], meta["level"], meta["context"]
        ('login', 'info', {'level': 'x'})
    """
    meta = record.to_wire()
    if not fields:
        return meta

    shadowed: dict[str, Any] = {}
    for key, value in fields.items():
        key = str(key)
        if key in RESERVED_FIELDS or key in meta:
            shadowed[key] = value
        else:
            meta[key] = value
    if shadowed:
        meta["context"] = shadowed
    return meta
