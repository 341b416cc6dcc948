"""Trace ID generation and context propagation.

This module owns the ambient trace context: the correlation id that is active
for the currently executing logical task. It is built on ``contextvars``, so
each asyncio task sees the value installed by the nearest enclosing scope on
its own call chain, and concurrently interleaved requests never observe each
other's ids. Tasks created inside a scope inherit the id because asyncio
copies the current context when a task is created.

Example:
    >>> from unnbound_logger.context import trace_context
    >>> trace_context.run("abc-123", trace_context.get_trace_id)
    'abc-123'
    >>> trace_context.get_trace_id() is None
    True
"""

from __future__ import annotations

import contextvars
import functools
import inspect
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, TypeVar, overload

from unnbound_logger.ids import generate_uuid

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

# HTTP header name for trace ID propagation
TRACE_ID_HEADER = "unnbound-trace-id"

# Context variable for storing trace ID in async contexts
_trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "unnbound_trace_id", default=None
)


def generate_trace_id() -> str:
    """Generate a new unique trace ID.

    Returns:
        A unique trace ID string (UUID v4 format)

    Example:
        >>> len(generate_trace_id())
        36
    """
    return generate_uuid()


class TraceContextStore:
    """Execution-scoped holder of the active correlation id.

    A single process-wide instance (``trace_context``) is created at import
    time. The store itself keeps no per-request state: every value lives in
    the context of the task that installed it.

    Example:
        >>> async def handler() -> str | None:
        ...     return trace_context.get_trace_id()
        >>> asyncio.run(trace_context.run("request-1", handler))
        'request-1'
    """

    def __init__(self, var: contextvars.ContextVar[str | None] = _trace_id_var) -> None:
        self._var = var

    @overload
    def run(self, trace_id: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> Awaitable[T]: ...

    @overload
    def run(self, trace_id: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T: ...

    def run(self, trace_id: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute ``fn`` with ``trace_id`` as the active correlation id.

        Synchronous work done by ``fn`` sees ``trace_id``; the previous id is
        restored as soon as ``fn`` returns or raises. When ``fn`` returns an
        awaitable (e.g. ``fn`` is a coroutine function), a wrapping coroutine
        is returned instead, which activates ``trace_id`` for the whole await
        chain and restores the previous id once the awaitable completes.

        Args:
            trace_id: Correlation id to activate
            fn: Callable to execute
            *args: Positional arguments for ``fn``
            **kwargs: Keyword arguments for ``fn``

        Returns:
            ``fn``'s result, or an awaitable resolving to it
        """
        token = self._var.set(trace_id)
        try:
            result = fn(*args, **kwargs)
        finally:
            self._var.reset(token)

        if inspect.isawaitable(result):
            return self._run_awaitable(trace_id, result)
        return result

    async def _run_awaitable(self, trace_id: str, awaitable: Awaitable[T]) -> T:
        token = self._var.set(trace_id)
        try:
            return await awaitable
        finally:
            self._var.reset(token)

    def get_trace_id(self) -> str | None:
        """Return the active trace id for the current task, or None."""
        return self._var.get()

    def scope(self, trace_id: str | None = None) -> LogContext:
        """Context manager form of :meth:`run`.

        Example:
            >>> with trace_context.scope("job-42") as trace_id:
            ...     trace_context.get_trace_id()
            'job-42'
        """
        return LogContext(trace_id, store=self)


trace_context = TraceContextStore()


def get_trace_id() -> str | None:
    """Get the current trace ID from context.

    Returns:
        Current trace ID if set, None otherwise

    Example:
        >>> set_trace_id("test-trace-123")
        >>> get_trace_id()
        'test-trace-123'
        >>> clear_trace_id()
        >>> get_trace_id() is None
        True
    """
    return _trace_id_var.get()


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context.

    Unlike :meth:`TraceContextStore.run`, the value stays set until it is
    cleared or the enclosing task finishes. Prefer ``run``/``scope``.

    Args:
        trace_id: The trace ID to set

    Raises:
        ValueError: If trace_id is empty or None
    """
    if not trace_id:
        raise ValueError("Trace ID cannot be empty")
    _trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    """Clear the trace ID from the current context."""
    _trace_id_var.set(None)


def get_or_create_trace_id() -> str:
    """Get existing trace ID or generate and set a new one.

    Returns:
        Current or newly generated trace ID
    """
    trace_id = get_trace_id()
    if trace_id is None:
        trace_id = generate_trace_id()
        set_trace_id(trace_id)
    return trace_id


class LogContext:
    """Context manager for scoped trace ID management.

    Sets a trace ID for a block of code and restores the previous value when
    the block exits, including on exceptions.

    Args:
        trace_id: The trace ID to set for this context. If None, generates new ID.

    Example:
        >>> with LogContext("request-123"):
        ...     print(get_trace_id())
        request-123
    """

    def __init__(self, trace_id: str | None = None, store: TraceContextStore | None = None) -> None:
        self.trace_id = trace_id or generate_trace_id()
        self._store = store or trace_context
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> str:
        self._token = self._store._var.set(self.trace_id)
        return self.trace_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            self._store._var.reset(self._token)
            self._token = None


@overload
def with_trace(fn: F, *, trace_id: str | None = None) -> F: ...


@overload
def with_trace(fn: None = None, *, trace_id: str | None = None) -> Callable[[F], F]: ...


def with_trace(fn: F | None = None, *, trace_id: str | None = None) -> F | Callable[[F], F]:
    """Wrap a function so every call runs inside a trace scope.

    The id is fixed when the wrapper is created: either ``trace_id`` or a
    freshly generated one. Works for both sync and async callables.

    Example:
        >>> @with_trace(trace_id="nightly-sync")
        ... def sync_files() -> str | None:
        ...     return get_trace_id()
        >>> sync_files()
        'nightly-sync'
    """

    def decorator(func: F) -> F:
        bound_id = trace_id or generate_trace_id()

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await trace_context.run(bound_id, func, *args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return trace_context.run(bound_id, func, *args, **kwargs)

        return wrapper  # type: ignore[return-value]

    if fn is not None:
        return decorator(fn)
    return decorator
