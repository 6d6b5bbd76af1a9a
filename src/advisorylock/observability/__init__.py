"""
Observability utilities for advisorylock.

Provides the structured lock-event sinks, the composition-based tracer,
and standard span attribute names.

Note:
    OpenTelemetry is an optional dependency. ``create_tracer`` returns a
    ``NullTracer`` when it is not installed.
"""

from advisorylock.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_HOLDER_ID,
    ATTR_LOCK_ID,
    ATTR_LOCK_NAME,
    ATTR_LOCK_TIMEOUT,
    ATTR_RACE_CONCURRENCY,
    ATTR_RACE_SUCCESS_COUNT,
)
from advisorylock.observability.events import (
    LockEvent,
    LockEventSink,
    LockEventType,
    LoggingEventSink,
    NullEventSink,
    RecordingEventSink,
)
from advisorylock.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Attributes
    "ATTR_DB_SYSTEM",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_HOLDER_ID",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_RACE_CONCURRENCY",
    "ATTR_RACE_SUCCESS_COUNT",
    # Events
    "LockEvent",
    "LockEventSink",
    "LockEventType",
    "LoggingEventSink",
    "NullEventSink",
    "RecordingEventSink",
    # Tracing
    "OTEL_AVAILABLE",
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "Tracer",
    "create_tracer",
]
