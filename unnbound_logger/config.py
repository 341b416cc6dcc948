"""
Configuration for unnbound-logger.

Process-wide settings are read once from environment variables (prefix
``UNNBOUND_``) or a ``.env`` file using Pydantic Settings. Values passed to
``UnnboundLogger(...)`` take precedence over these defaults.

Example:
    >>> from unnbound_logger.config import get_settings
    >>> settings = get_settings()
    >>> settings.trace_header_key
    'unnbound-trace-id'

    # Via environment variables
    export UNNBOUND_LOG_LEVEL=debug
    export UNNBOUND_SERVICE_NAME=order-service
    export UNNBOUND_WORKFLOW_ID=wf-2025-01-nightly
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from unnbound_logger.context import TRACE_ID_HEADER
from unnbound_logger.types import LogLevel


class LoggerSettings(BaseSettings):
    """
    Logger settings sourced from the environment.

    Attributes:
        log_level: Default severity threshold (error, warn, info, debug)
        service_name: Service tag stamped on every record
        environment: Environment tag stamped on every record (e.g. production)
        trace_header_key: Header carrying the trace id in and out
        workflow_id: Static workflow id stamped on every record
        service_id: Static service id stamped on every record
        deployment_id: Static deployment id stamped on every record
        log_engine: Backend used when no engine is passed explicitly
        max_body_bytes: Largest request/response body captured by middleware
        ignore_trace_routes: Inbound path globs the middleware skips
        ignore_outbound_trace_routes: Outbound URL globs the client skips
    """

    model_config = SettingsConfigDict(
        env_prefix="UNNBOUND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ========================================================================
    # Output
    # ========================================================================

    log_level: LogLevel = LogLevel.INFO
    service_name: str | None = None
    environment: str | None = None
    log_engine: Literal["stdlib", "structlog"] = "stdlib"

    # ========================================================================
    # Correlation metadata
    # ========================================================================

    trace_header_key: str = TRACE_ID_HEADER
    workflow_id: str | None = None
    service_id: str | None = None
    deployment_id: str | None = None

    # ========================================================================
    # HTTP instrumentation
    # ========================================================================

    max_body_bytes: int = Field(default=64 * 1024, ge=0)
    """Bodies larger than this are truncated in logs (never in transit)."""

    ignore_trace_routes: list[str] = Field(default_factory=list)
    ignore_outbound_trace_routes: list[str] = Field(default_factory=list)

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_level(cls, value: object) -> LogLevel:
        return LogLevel.parse(value)  # type: ignore[arg-type]

    @field_validator("trace_header_key")
    @classmethod
    def _lower_header(cls, value: str) -> str:
        return value.strip().lower()


@lru_cache(maxsize=1)
def get_settings() -> LoggerSettings:
    """Return the process-wide settings, reading the environment once."""
    return LoggerSettings()
