"""Logger facade.

:class:`UnnboundLogger` is the single entry point application code talks to.
It resolves caller input into typed records, tags them with the active trace
id and the logger's static identifiers, and hands them to a
:class:`~unnbound_logger.engines.LoggingEngine`.

No logging call raises. Failures while building or emitting a record are
reported on the ``unnbound_logger.internal`` stdlib logger and the caller
continues unaffected.

Example:
    >>> from unnbound_logger import UnnboundLogger
    >>> logger = UnnboundLogger(service_name="billing")
    >>> logger.info("Invoice sent", invoice_id="inv-1")
    >>> logger.error(ValueError("card declined"))
"""

from __future__ import annotations

import copy
import logging
import sys
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError

from unnbound_logger.config import LoggerSettings, get_settings
from unnbound_logger.correlation import CorrelationEntry, CorrelationRegistry
from unnbound_logger.engines import LoggingEngine, create_engine
from unnbound_logger.exceptions import ConfigurationError
from unnbound_logger.http_views import describe_request, describe_response
from unnbound_logger.ids import elapsed_ms, generate_uuid, now
from unnbound_logger.matching import should_ignore_path, should_ignore_url
from unnbound_logger.records import (
    RecordBuilder,
    RecordDefaults,
    level_for_status,
    resolve_trace_id,
    to_meta,
)
from unnbound_logger.types import (
    BaseLogRecord,
    CorrelationIds,
    DbQueryTransaction,
    LogLevel,
    SerializedError,
    SftpTransaction,
    TransactionStatus,
    to_message,
)

internal_logger = logging.getLogger("unnbound_logger.internal")


def serialize_error(error: Any) -> SerializedError | None:
    """Coerce an ``error`` option into a SerializedError.

    Accepts exceptions, SerializedError instances, mappings with
    ``name``/``message``/``stack`` keys, or any other value (used as the
    message).
    """
    if error is None:
        return None
    if isinstance(error, SerializedError):
        return error
    if isinstance(error, BaseException):
        return SerializedError.from_exception(error)
    if isinstance(error, Mapping):
        return SerializedError(
            name=str(error.get("name") or "Error"),
            message=str(error.get("message") or ""),
            stack=str(error["stack"]) if error.get("stack") else None,
        )
    return SerializedError(name="Error", message=str(error))


def _epoch(start_time: float | datetime | None) -> float:
    if start_time is None:
        return now()
    if isinstance(start_time, datetime):
        return start_time.timestamp()
    return float(start_time)


def _status_of(model: SftpTransaction | DbQueryTransaction) -> LogLevel:
    return LogLevel.ERROR if model.status == TransactionStatus.FAILURE else LogLevel.INFO


TransactionT = TypeVar("TransactionT", SftpTransaction, DbQueryTransaction)


def _coerce_transaction(model_cls: type[TransactionT], data: TransactionT | Mapping[str, Any]) -> TransactionT:
    """Validate transaction data, nulling out fields that fail validation."""
    if isinstance(data, model_cls):
        return data
    payload = dict(data)
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        internal_logger.debug("Invalid %s fields logged as null: %s", model_cls.__name__, sorted(invalid))

    for name, field in model_cls.model_fields.items():
        if name in invalid or field.alias in invalid:
            payload.pop(name, None)
            payload[field.alias or name] = None
    return model_cls.model_validate(payload)


class UnnboundLogger:
    """Structured logging facade.

    Every keyword defaults from :class:`~unnbound_logger.config.LoggerSettings`
    (environment variables prefixed ``UNNBOUND_``).

    Args:
        default_level: Minimum level for the engine built by this logger
        service_name: Service tag stamped on every record
        environment: Environment tag stamped on every record
        engine: Backend to write records to; built from settings when omitted
        trace_header_key: Header carrying the trace id in and out
        ignore_trace_routes: Inbound path globs that are not traced
        ignore_outbound_trace_routes: Outbound URL globs that are not traced
        allowed_headers: Header allow-list; when omitted every header is
            logged and sensitive ones are redacted
        settings: Settings to default from instead of the process-wide ones
        max_body_bytes: Bodies beyond this size are truncated in records
        registry: Correlation table shared with other loggers
        workflow_id: Static workflow id; overridable per call
        service_id: Static service id
        deployment_id: Static deployment id

    Raises:
        ConfigurationError: If the level, engine name or engine is invalid
    """

    def __init__(
        self,
        *,
        default_level: LogLevel | str | int | None = None,
        service_name: str | None = None,
        environment: str | None = None,
        engine: LoggingEngine | None = None,
        trace_header_key: str | None = None,
        ignore_trace_routes: Iterable[str] | None = None,
        ignore_outbound_trace_routes: Iterable[str] | None = None,
        allowed_headers: Iterable[str] | None = None,
        settings: LoggerSettings | None = None,
        max_body_bytes: int | None = None,
        registry: CorrelationRegistry | None = None,
        workflow_id: str | None = None,
        service_id: str | None = None,
        deployment_id: str | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.settings = settings
        self.default_level = LogLevel.parse(default_level if default_level is not None else settings.log_level)

        if engine is None:
            engine = create_engine(settings.log_engine, self.default_level)
        elif not isinstance(engine, LoggingEngine):
            raise ConfigurationError(f"Engine {engine!r} does not implement the LoggingEngine interface")
        self.engine: LoggingEngine = engine

        self._trace_header_key = (trace_header_key or settings.trace_header_key).strip().lower()
        self.ignore_trace_routes = tuple(
            ignore_trace_routes if ignore_trace_routes is not None else settings.ignore_trace_routes
        )
        self.ignore_outbound_trace_routes = tuple(
            ignore_outbound_trace_routes
            if ignore_outbound_trace_routes is not None
            else settings.ignore_outbound_trace_routes
        )
        self.max_body_bytes = max_body_bytes if max_body_bytes is not None else settings.max_body_bytes
        self.registry = registry if registry is not None else CorrelationRegistry()
        self.builder = RecordBuilder(
            RecordDefaults(
                service=service_name or settings.service_name,
                environment=environment or settings.environment,
                workflow_id=workflow_id or settings.workflow_id,
                service_id=service_id or settings.service_id,
                deployment_id=deployment_id or settings.deployment_id,
            ),
            allowed_headers=allowed_headers,
            max_body_bytes=self.max_body_bytes,
        )
        self._static_fields: dict[str, Any] = {}

    # ========================================================================
    # Configuration accessors
    # ========================================================================

    @property
    def trace_header_key(self) -> str:
        return self._trace_header_key

    def should_ignore_inbound(self, path: str | None) -> bool:
        """Whether an inbound request path is excluded from tracing."""
        return should_ignore_path(path, self.ignore_trace_routes)

    def should_ignore_outbound(self, url: str | None) -> bool:
        """Whether an outbound URL is excluded from tracing."""
        return should_ignore_url(url, self.ignore_outbound_trace_routes)

    def child(self, **static_fields: Any) -> UnnboundLogger:
        """Return a logger whose records also carry ``static_fields``.

        The child shares the engine and correlation table with its parent.

        Example:
            >>> orders_log = logger.child(component="orders")
            >>> orders_log.info("Order created")  # record has component="orders"
        """
        clone = copy.copy(self)
        clone._static_fields = {**self._static_fields, **static_fields}
        return clone

    # ========================================================================
    # General records
    # ========================================================================

    def log(
        self,
        level: LogLevel | str | int | None = None,
        message: Any = None,
        /,
        *,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        error: Any = None,
        **extra: Any,
    ) -> None:
        """Emit a general record.

        A ``level`` keyword overrides the positional level, and a ``message``
        keyword stands in for a missing positional message.

        Args:
            level: Severity (``LogLevel``, its value or a stdlib spelling)
            message: Text, exception, mapping, pydantic model or dataclass
            trace_id: Overrides the active trace id
            request_id: Request id to attach
            workflow_id: Overrides the static workflow id
            error: Exception or error data attached as ``error``
            **extra: Additional top-level fields
        """
        try:
            override = extra.pop("level", None)
            if override is not None:
                level = override
            if message is None and "message" in extra:
                message = extra.pop("message")
            resolved = self._resolve_level(level, LogLevel.INFO)
            record, fields = self.builder.general(
                resolved,
                to_message(message),
                trace_id=trace_id,
                request_id=request_id,
                workflow_id=workflow_id,
                error=serialize_error(error),
            )
            self._emit(resolved, record, {**fields, **extra})
        except Exception as exc:
            self._report("general", exc)

    def error(self, message: Any = None, /, *, level: LogLevel | str | int | None = None, **options: Any) -> None:
        self.log(level if level is not None else LogLevel.ERROR, message, **options)

    def warn(self, message: Any = None, /, *, level: LogLevel | str | int | None = None, **options: Any) -> None:
        self.log(level if level is not None else LogLevel.WARN, message, **options)

    warning = warn

    def info(self, message: Any = None, /, *, level: LogLevel | str | int | None = None, **options: Any) -> None:
        self.log(level if level is not None else LogLevel.INFO, message, **options)

    def debug(self, message: Any = None, /, *, level: LogLevel | str | int | None = None, **options: Any) -> None:
        self.log(level if level is not None else LogLevel.DEBUG, message, **options)

    def exception(self, message: Any = None, /, **options: Any) -> None:
        """Log at error level with the exception currently being handled.

        Example:
            >>> try:
            ...     charge(card)
            ... except PaymentError:
            ...     logger.exception("Charge failed", card_id=card.id)
        """
        if options.get("error") is None:
            options["error"] = sys.exception()
        self.log(LogLevel.ERROR, message, **options)

    # ========================================================================
    # HTTP records
    # ========================================================================

    def http_request(
        self,
        request: Any,
        *,
        level: LogLevel | str | int | None = None,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        start_time: float | datetime | None = None,
        body: Any = None,
        **extra: Any,
    ) -> CorrelationIds:
        """Log an HTTP request and remember it for the paired response.

        Args:
            request: Starlette/FastAPI or httpx request, RequestView or mapping
            level: Severity (default: info)
            trace_id: Overrides the active trace id
            request_id: Reuse an existing request id instead of minting one
            workflow_id: Overrides the static workflow id
            start_time: Epoch seconds or datetime the request started at
            body: Request body, when it is not readable from ``request``
            **extra: Additional top-level fields

        Returns:
            The request and trace ids the record was tagged with
        """
        ids = CorrelationIds(request_id=request_id or generate_uuid(), trace_id=resolve_trace_id(trace_id))
        try:
            resolved = self._resolve_level(level, LogLevel.INFO)
            self.registry.remember(
                request,
                CorrelationEntry(
                    request_id=ids.request_id,
                    trace_id=ids.trace_id,
                    start_time=_epoch(start_time),
                    workflow_id=workflow_id,
                ),
            )
            record = self.builder.http_request(
                describe_request(request),
                level=resolved,
                trace_id=ids.trace_id,
                request_id=ids.request_id,
                workflow_id=workflow_id,
                body=body,
            )
            self._emit(resolved, record, extra)
        except Exception as exc:
            self._report("httpRequest", exc)
        return ids

    def http_response(
        self,
        response: Any,
        request: Any = None,
        *,
        level: LogLevel | str | int | None = None,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        start_time: float | datetime | None = None,
        duration: float | None = None,
        body: Any = None,
        error: Any = None,
        **extra: Any,
    ) -> None:
        """Log an HTTP response, paired with its request when possible.

        The request and trace ids, workflow id and start time stored by
        :meth:`http_request` for the same request are reused. Without a
        stored entry the options are used, and failing those a new request
        id and a zero duration.

        Args:
            response: Starlette or httpx response, ResponseView or mapping
            request: The request passed to ``http_request``; httpx responses
                default to their own request
            level: Severity (default: derived from the status code)
            trace_id: Trace id when no entry is stored
            request_id: Request id when no entry is stored
            workflow_id: Overrides the stored or static workflow id
            start_time: Start time when no entry is stored
            duration: Duration in milliseconds; computed when omitted
            body: Response body, when it is not readable from ``response``
            error: Exception or error data attached as ``error``
            **extra: Additional top-level fields
        """
        try:
            response_view = describe_response(response)
            if request is None:
                request = response_view.request
            request_view = describe_request(request)

            entry = self.registry.recall(request) if request is not None else None
            if entry is None and request_id is None and start_time is None and duration is None:
                internal_logger.debug(
                    "No stored request for response to %s %s; logging it uncorrelated",
                    request_view.method,
                    request_view.url,
                )

            started = start_time if start_time is not None else (entry.start_time if entry else None)
            resolved = self._resolve_level(level, level_for_status(response_view.status_code))
            record = self.builder.http_response(
                response_view,
                request_view,
                level=resolved,
                trace_id=resolve_trace_id(entry.trace_id if entry else trace_id),
                request_id=entry.request_id if entry else (request_id or generate_uuid()),
                workflow_id=workflow_id or (entry.workflow_id if entry else None),
                duration=float(duration) if duration is not None else elapsed_ms(started),
                body=body,
                error=serialize_error(error),
            )
            self._emit(resolved, record, extra)
        except Exception as exc:
            self._report("httpResponse", exc)

    # ========================================================================
    # Transaction records
    # ========================================================================

    def sftp_transaction(
        self,
        transaction: SftpTransaction | Mapping[str, Any],
        *,
        level: LogLevel | str | int | None = None,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        start_time: float | datetime | None = None,
        duration: float | None = None,
        error: Any = None,
        **extra: Any,
    ) -> None:
        """Log an SFTP operation.

        Severity is error for failed transactions and info otherwise. Fields that
        fail validation are logged as null rather than dropping the record.

        Example:
            >>> logger.sftp_transaction(
            ...     {"host": "sftp.partner.com", "username": "etl",
            ...      "operation": "upload", "path": "/in/orders.csv",
            ...      "status": "failure"},
            ...     error=exc,
            ... )
        """
        try:
            model = _coerce_transaction(SftpTransaction, transaction)
            resolved = self._resolve_level(level, _status_of(model))
            record = self.builder.sftp_transaction(
                model,
                level=resolved,
                duration=float(duration) if duration is not None else elapsed_ms(start_time),
                trace_id=trace_id,
                request_id=request_id,
                workflow_id=workflow_id,
                error=serialize_error(error),
            )
            self._emit(resolved, record, extra)
        except Exception as exc:
            self._report("sftpTransaction", exc)

    def db_query_transaction(
        self,
        query: DbQueryTransaction | Mapping[str, Any],
        *,
        level: LogLevel | str | int | None = None,
        trace_id: str | None = None,
        request_id: str | None = None,
        workflow_id: str | None = None,
        start_time: float | datetime | None = None,
        duration: float | None = None,
        error: Any = None,
        **extra: Any,
    ) -> None:
        """Log a database query. Query text is sanitised before it is emitted."""
        try:
            model = _coerce_transaction(DbQueryTransaction, query)
            resolved = self._resolve_level(level, _status_of(model))
            record = self.builder.db_query_transaction(
                model,
                level=resolved,
                duration=float(duration) if duration is not None else elapsed_ms(start_time),
                trace_id=trace_id,
                request_id=request_id,
                workflow_id=workflow_id,
                error=serialize_error(error),
            )
            self._emit(resolved, record, extra)
        except Exception as exc:
            self._report("dbQueryTransaction", exc)

    # ========================================================================
    # Internals
    # ========================================================================

    def _resolve_level(self, value: LogLevel | str | int | None, default: LogLevel) -> LogLevel:
        if value is None:
            return default
        try:
            return LogLevel.parse(value)
        except ConfigurationError:
            internal_logger.debug("Unknown log level %r, using %s", value, default.value)
            return default

    def _emit(self, level: LogLevel, record: BaseLogRecord, fields: Mapping[str, Any] | None = None) -> None:
        merged = {**self._static_fields, **(fields or {})}
        self.engine.log(level, record.message, to_meta(record, merged))

    def _report(self, record_type: str, exc: Exception) -> None:
        internal_logger.warning("Failed to emit %s record: %s", record_type, exc, exc_info=exc)


_default_logger: UnnboundLogger | None = None


def get_default_logger() -> UnnboundLogger:
    """Return the process-wide logger, creating it from settings on first use."""
    global _default_logger
    if _default_logger is None:
        _default_logger = UnnboundLogger()
    return _default_logger


def set_default_logger(logger: UnnboundLogger | None) -> None:
    """Replace the process-wide logger (``None`` rebuilds it on next use)."""
    global _default_logger
    _default_logger = logger
