"""Typed log record schema.

Records are pydantic models with snake_case attributes and camelCase wire
keys (``trace_id`` -> ``traceId``), so the JSON consumed by log aggregators
keeps the same shape whichever engine renders it.

Example log output (httpResponse):
    {
        "logId": "5b0e...",
        "timestamp": "2025-01-01T12:00:00.150Z",
        "level": "warn",
        "type": "httpResponse",
        "message": "GET /orders/42 404 Not Found",
        "traceId": "c1d2...",
        "requestId": "9f8e...",
        "duration": 150.0,
        "httpResponse": {"url": "/orders/42", "method": "GET", "statusCode": 404, ...}
    }
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Annotated, Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from unnbound_logger.exceptions import ConfigurationError
from unnbound_logger.sanitizer import sanitize_query


class LogLevel(StrEnum):
    """Severity levels understood by every engine."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"

    @property
    def stdlib_level(self) -> int:
        """Matching ``logging`` module level number."""
        return _STDLIB_LEVELS[self]

    @classmethod
    def parse(cls, value: LogLevel | str | int) -> LogLevel:
        """Resolve a level given as enum, name or stdlib level number.

        Accepts stdlib spellings too (``warning``, ``critical``, ``exception``).

        Raises:
            ConfigurationError: If the value does not name a level
        """
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value >= logging.ERROR:
                return cls.ERROR
            if value >= logging.WARNING:
                return cls.WARN
            if value >= logging.INFO:
                return cls.INFO
            return cls.DEBUG
        if isinstance(value, str):
            level = _LEVEL_ALIASES.get(value.strip().lower())
            if level is not None:
                return level
        raise ConfigurationError(f"Invalid log level: {value}")


_STDLIB_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

_LEVEL_ALIASES = {
    "error": LogLevel.ERROR,
    "exception": LogLevel.ERROR,
    "critical": LogLevel.ERROR,
    "fatal": LogLevel.ERROR,
    "warn": LogLevel.WARN,
    "warning": LogLevel.WARN,
    "info": LogLevel.INFO,
    "debug": LogLevel.DEBUG,
    "trace": LogLevel.DEBUG,
}


class LogType(StrEnum):
    GENERAL = "general"
    HTTP_REQUEST = "httpRequest"
    HTTP_RESPONSE = "httpResponse"
    SFTP_TRANSACTION = "sftpTransaction"
    DB_QUERY_TRANSACTION = "dbQueryTransaction"


class SftpOperation(StrEnum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    LIST = "list"
    DELETE = "delete"
    RENAME = "rename"
    STAT = "stat"


class TransactionStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


class DbVendor(StrEnum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    MSSQL = "mssql"
    MONGODB = "mongodb"


# Top-level keys callers cannot overwrite through extra fields
RESERVED_FIELDS = frozenset(
    {
        "logId",
        "timestamp",
        "level",
        "type",
        "message",
        "traceId",
        "requestId",
        "workflowId",
        "serviceId",
        "deploymentId",
        "duration",
        "error",
        "httpRequest",
        "httpResponse",
        "sftpTransaction",
        "dbQueryTransaction",
    }
)


class WireModel(BaseModel):
    """Base for models rendered with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire (camelCase) keys."""
        return self.model_dump(by_alias=True)


class SerializedError(WireModel):
    """Exception captured as plain data."""

    name: str
    message: str
    stack: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> SerializedError:
        stack = None
        if exc.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(name=type(exc).__name__, message=str(exc), stack=stack)


class HttpRequestPayload(WireModel):
    url: str | None = None
    method: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    ip: str | None = None
    body: Any = None
    query: dict[str, Any] | None = None


class HttpResponsePayload(HttpRequestPayload):
    status_code: int | None = None
    status_message: str | None = None


class SftpTransaction(WireModel):
    """An SFTP operation to be logged.

    Every field is optional so incomplete transactions still produce a
    record; missing values are rendered as null.

    Example:
        >>> SftpTransaction(host="sftp.partner.com", username="etl",
        ...                 operation="upload", path="/in/orders.csv",
        ...                 bytes_transferred=2048)
    """

    host: str | None = None
    username: str | None = None
    operation: SftpOperation | None = None
    path: str | None = None
    status: TransactionStatus | None = TransactionStatus.SUCCESS
    bytes_transferred: int | None = Field(default=None, ge=0)
    files_listed: int | None = Field(default=None, ge=0)
    source_path: str | None = None


class DbQueryTransaction(WireModel):
    """A database query to be logged. Query text is sanitised on construction."""

    instance: str | None = None
    vendor: DbVendor | None = None
    query: str | None = None
    status: TransactionStatus | None = TransactionStatus.SUCCESS
    rows_returned: int | None = Field(default=None, ge=0)
    rows_affected: int | None = Field(default=None, ge=0)

    @field_validator("query", mode="before")
    @classmethod
    def _sanitize_query(cls, value: Any) -> str | None:
        return sanitize_query(value)


class BaseLogRecord(WireModel):
    log_id: str
    timestamp: str
    level: LogLevel
    message: str = ""
    trace_id: str
    request_id: str | None = None
    workflow_id: str | None = None
    service_id: str | None = None
    deployment_id: str | None = None
    service: str | None = None
    environment: str | None = None
    error: SerializedError | None = None


class GeneralLog(BaseLogRecord):
    type: Literal["general"] = "general"


class LogTransaction(BaseLogRecord):
    duration: float | None = Field(default=None, ge=0)


class HttpRequestLog(LogTransaction):
    type: Literal["httpRequest"] = "httpRequest"
    request_id: str
    http_request: HttpRequestPayload


class HttpResponseLog(LogTransaction):
    type: Literal["httpResponse"] = "httpResponse"
    request_id: str
    duration: float = Field(default=0.0, ge=0)
    http_response: HttpResponsePayload


class SftpTransactionLog(LogTransaction):
    type: Literal["sftpTransaction"] = "sftpTransaction"
    duration: float = Field(default=0.0, ge=0)
    sftp_transaction: SftpTransaction


class DbQueryTransactionLog(LogTransaction):
    type: Literal["dbQueryTransaction"] = "dbQueryTransaction"
    duration: float = Field(default=0.0, ge=0)
    db_query_transaction: DbQueryTransaction


LogRecord = Annotated[
    GeneralLog | HttpRequestLog | HttpResponseLog | SftpTransactionLog | DbQueryTransactionLog,
    Field(discriminator="type"),
]


class CorrelationIds(NamedTuple):
    """Identifiers returned by ``http_request`` for manual correlation."""

    request_id: str
    trace_id: str


# Message input, resolved once at the API boundary


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class StructuredFields:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CapturedError:
    error: SerializedError


Message = PlainText | StructuredFields | CapturedError


def to_message(value: Any) -> Message:
    """Resolve a caller-supplied message into a Message variant.

    Strings become PlainText, exceptions CapturedError, mappings, pydantic
    models and dataclass instances StructuredFields; anything else is
    coerced with ``str()``.
    """
    if isinstance(value, PlainText | StructuredFields | CapturedError):
        return value
    if value is None:
        return PlainText("")
    if isinstance(value, str):
        return PlainText(value)
    if isinstance(value, BaseException):
        return CapturedError(SerializedError.from_exception(value))
    if isinstance(value, BaseModel):
        return StructuredFields(value.model_dump())
    if isinstance(value, dict) or (hasattr(value, "keys") and hasattr(value, "__getitem__")):
        try:
            return StructuredFields({str(key): value[key] for key in value.keys()})
        except Exception:
            return PlainText(_coerce_text(value))
    if hasattr(value, "__dataclass_fields__") and not isinstance(value, type):
        return StructuredFields(asdict(value))
    return PlainText(_coerce_text(value))


def _coerce_text(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return repr(value)
