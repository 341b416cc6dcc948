"""Structured logging with trace correlation.

Records (general messages, HTTP request/response pairs, SFTP and database
transactions) share one JSON schema and carry the trace id of the request
or job they belong to. The trace id follows the work through sync calls,
asyncio tasks and outbound httpx calls without being passed around.

Usage:
    from unnbound_logger import UnnboundLogger, add_trace_middleware

    logger = UnnboundLogger(service_name="orders")
    add_trace_middleware(app, logger)

    logger.info("Order created", order_id=order.id)

Module-level shortcuts write through a process-wide logger built from
environment settings:

    import unnbound_logger

    unnbound_logger.info("Nightly sync started")
"""

from typing import Any

from unnbound_logger.config import LoggerSettings, get_settings
from unnbound_logger.context import (
    TRACE_ID_HEADER,
    LogContext,
    TraceContextStore,
    clear_trace_id,
    generate_trace_id,
    get_or_create_trace_id,
    get_trace_id,
    set_trace_id,
    trace_context,
    with_trace,
)
from unnbound_logger.correlation import CorrelationRegistry
from unnbound_logger.engines import (
    LoggingEngine,
    MemoryEngine,
    StdlibLoggingEngine,
    StructlogEngine,
    configure_logging,
)
from unnbound_logger.exceptions import ConfigurationError, UnnboundLoggerError
from unnbound_logger.formatter import JSONFormatter
from unnbound_logger.http_client import (
    OutboundTraceInterceptor,
    TracedHTTPXClient,
    TracedHTTPXSyncClient,
    get_traced_client,
    get_traced_sync_client,
    trace_event_hooks,
    traced_get,
    traced_post,
)
from unnbound_logger.logger import UnnboundLogger, get_default_logger, set_default_logger
from unnbound_logger.middleware import TraceIDMiddleware, TraceMiddleware, add_trace_middleware
from unnbound_logger.types import (
    CorrelationIds,
    DbQueryTransaction,
    DbVendor,
    LogLevel,
    LogType,
    SftpOperation,
    SftpTransaction,
    TransactionStatus,
)


def log(level: LogLevel | str | None = None, message: Any = None, /, **options: Any) -> None:
    get_default_logger().log(level, message, **options)


def error(message: Any = None, /, **options: Any) -> None:
    get_default_logger().error(message, **options)


def warn(message: Any = None, /, **options: Any) -> None:
    get_default_logger().warn(message, **options)


def info(message: Any = None, /, **options: Any) -> None:
    get_default_logger().info(message, **options)


def debug(message: Any = None, /, **options: Any) -> None:
    get_default_logger().debug(message, **options)


def http_request(request: Any, **options: Any) -> CorrelationIds:
    return get_default_logger().http_request(request, **options)


def http_response(response: Any, request: Any = None, **options: Any) -> None:
    get_default_logger().http_response(response, request, **options)


def sftp_transaction(transaction: Any, **options: Any) -> None:
    get_default_logger().sftp_transaction(transaction, **options)


def db_query_transaction(query: Any, **options: Any) -> None:
    get_default_logger().db_query_transaction(query, **options)


__all__ = [
    # Facade
    "UnnboundLogger",
    "get_default_logger",
    "set_default_logger",
    "log",
    "error",
    "warn",
    "info",
    "debug",
    "http_request",
    "http_response",
    "sftp_transaction",
    "db_query_transaction",
    # Context
    "TRACE_ID_HEADER",
    "TraceContextStore",
    "trace_context",
    "LogContext",
    "with_trace",
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
    "clear_trace_id",
    "get_or_create_trace_id",
    "CorrelationRegistry",
    # Engines
    "LoggingEngine",
    "StdlibLoggingEngine",
    "StructlogEngine",
    "MemoryEngine",
    "JSONFormatter",
    "configure_logging",
    # HTTP
    "TraceMiddleware",
    "TraceIDMiddleware",
    "add_trace_middleware",
    "OutboundTraceInterceptor",
    "TracedHTTPXClient",
    "TracedHTTPXSyncClient",
    "get_traced_client",
    "get_traced_sync_client",
    "traced_get",
    "traced_post",
    "trace_event_hooks",
    # Types
    "LogLevel",
    "LogType",
    "CorrelationIds",
    "SftpTransaction",
    "SftpOperation",
    "DbQueryTransaction",
    "DbVendor",
    "TransactionStatus",
    # Config / errors
    "LoggerSettings",
    "get_settings",
    "UnnboundLoggerError",
    "ConfigurationError",
]
