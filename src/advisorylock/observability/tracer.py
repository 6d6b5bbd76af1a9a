"""
Tracer protocol and implementations for composition-based tracing.

Components receive a tracer as a dependency instead of importing
OpenTelemetry directly, so tracing can be disabled, swapped, or recorded
in tests.

Example:
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("advisorylock.acquire", {"advisorylock.lock.id": 42}):
    ...     ...
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span

# OpenTelemetry is an optional extra
try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]


@runtime_checkable
class Tracer(Protocol):
    """
    Protocol for tracers that can create tracing spans.

    Implementations:
    - NullTracer: No-op tracer for when tracing is disabled
    - OpenTelemetryTracer: Wrapper around OpenTelemetry tracer
    - MockTracer: Records spans for assertions in tests
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Create a tracing span context manager.

        Args:
            name: Span name (e.g., "advisorylock.acquire")
            attributes: Span attributes (optional)

        Returns:
            Context manager that yields Span or None
        """
        ...

    @property
    def enabled(self) -> bool:
        """True if tracing is active and will create real spans."""
        ...


class NullTracer:
    """
    No-op tracer implementation for when tracing is disabled.

    Example:
        >>> tracer = NullTracer()
        >>> with tracer.span("operation"):  # Does nothing
        ...     do_work()
    """

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        """Create a no-op span context (yields None)."""
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    OpenTelemetry tracer implementation.

    Args:
        tracer_name: Name for the tracer (typically __name__)

    Raises:
        ImportError: If OpenTelemetry is not installed
    """

    def __init__(self, tracer_name: str) -> None:
        if not OTEL_AVAILABLE:
            raise ImportError("opentelemetry-api is required for OpenTelemetryTracer")
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(
            name,
            attributes=attributes or {},
        )

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Mock tracer for testing that records span information.

    Example:
        >>> tracer = MockTracer()
        >>> with tracer.span("operation", {"key": "value"}):
        ...     pass
        >>> assert tracer.span_names == ["operation"]
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        """Record span and yield None."""
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        """Get just the span names for easy assertions."""
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Create an OpenTelemetryTracer if enabled and available, else a NullTracer.

    Args:
        name: Tracer name (typically __name__)
        enable_tracing: Whether tracing should be enabled (default True)

    Example:
        >>> def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True):
        ...     self._tracer = tracer or create_tracer(__name__, enable_tracing)
    """
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
