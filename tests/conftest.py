"""Shared fixtures for unnbound-logger tests."""

from collections.abc import Iterator

import pytest

from unnbound_logger.config import LoggerSettings
from unnbound_logger.context import clear_trace_id
from unnbound_logger.engines import MemoryEngine
from unnbound_logger.logger import UnnboundLogger, set_default_logger


@pytest.fixture(autouse=True)
def _cleanup_trace_context() -> Iterator[None]:
    """Ensure no trace id leaks between tests."""
    clear_trace_id()
    yield
    clear_trace_id()


@pytest.fixture(autouse=True)
def _reset_default_logger() -> Iterator[None]:
    yield
    set_default_logger(None)


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> LoggerSettings:
    """Settings isolated from the developer's environment and .env file."""
    for key in (
        "UNNBOUND_LOG_LEVEL",
        "UNNBOUND_SERVICE_NAME",
        "UNNBOUND_ENVIRONMENT",
        "UNNBOUND_LOG_ENGINE",
        "UNNBOUND_TRACE_HEADER_KEY",
        "UNNBOUND_WORKFLOW_ID",
        "UNNBOUND_SERVICE_ID",
        "UNNBOUND_DEPLOYMENT_ID",
        "UNNBOUND_MAX_BODY_BYTES",
        "UNNBOUND_IGNORE_TRACE_ROUTES",
        "UNNBOUND_IGNORE_OUTBOUND_TRACE_ROUTES",
    ):
        monkeypatch.delenv(key, raising=False)
    return LoggerSettings(_env_file=None)


@pytest.fixture()
def engine() -> MemoryEngine:
    return MemoryEngine()


@pytest.fixture()
def logger(engine: MemoryEngine, settings: LoggerSettings) -> UnnboundLogger:
    """Logger writing to an in-memory engine."""
    return UnnboundLogger(engine=engine, settings=settings, service_name="test-service")
