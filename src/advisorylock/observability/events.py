"""
Structured lock-state events.

Lock instances report every state change as a ``LockEvent`` sent to an
injected ``LockEventSink`` instead of writing to a console or a fixed
logger. The default sink forwards events to the standard ``logging``
module; tests inject a ``RecordingEventSink`` and assert on the captured
events.

Example:
    >>> sink = RecordingEventSink()
    >>> lock = AdvisoryLock(session, "reports:nightly", event_sink=sink)
    >>> await lock.acquire()
    >>> sink.event_types
    [<LockEventType.ACQUIRE_ATTEMPTED: 'acquire_attempted'>, <LockEventType.ACQUIRED: 'acquired'>]
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class LockEventType(Enum):
    """Kinds of lock-state events."""

    ACQUIRE_ATTEMPTED = "acquire_attempted"
    ACQUIRED = "acquired"
    NOT_ACQUIRED = "not_acquired"
    ACQUIRE_FAILED = "acquire_failed"
    RELEASED = "released"
    RELEASE_SKIPPED = "release_skipped"
    RELEASE_FAILED = "release_failed"
    ROLLBACK_FAILED = "rollback_failed"


class LockEvent(BaseModel):
    """
    Immutable record of a lock-state change.

    Attributes:
        event_type: What happened
        lock_name: Logical lock name
        lock_id: Numeric lock identifier
        holder_id: Optional identifier of the contender (for debugging)
        occurred_at: When the event was emitted (UTC)
        error: Error description for failure events
    """

    model_config = ConfigDict(frozen=True)

    event_type: LockEventType
    lock_name: str
    lock_id: int
    holder_id: str | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None


@runtime_checkable
class LockEventSink(Protocol):
    """Receives lock-state events."""

    def emit(self, event: LockEvent) -> None: ...


class NullEventSink:
    """Discards every event."""

    def emit(self, event: LockEvent) -> None:
        return None


_LEVELS: dict[LockEventType, int] = {
    LockEventType.ACQUIRE_ATTEMPTED: logging.DEBUG,
    LockEventType.ACQUIRED: logging.INFO,
    LockEventType.NOT_ACQUIRED: logging.INFO,
    LockEventType.ACQUIRE_FAILED: logging.ERROR,
    LockEventType.RELEASED: logging.INFO,
    LockEventType.RELEASE_SKIPPED: logging.WARNING,
    LockEventType.RELEASE_FAILED: logging.ERROR,
    LockEventType.ROLLBACK_FAILED: logging.WARNING,
}


class LoggingEventSink:
    """
    Forwards events to a standard library logger.

    Args:
        target: Logger to write to (defaults to this module's logger)
    """

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def emit(self, event: LockEvent) -> None:
        level = _LEVELS.get(event.event_type, logging.INFO)
        if event.error is not None:
            self._logger.log(
                level,
                "Advisory lock %s: name=%s, lock_id=%d, holder=%s, error=%s",
                event.event_type.value,
                event.lock_name,
                event.lock_id,
                event.holder_id,
                event.error,
            )
        else:
            self._logger.log(
                level,
                "Advisory lock %s: name=%s, lock_id=%d, holder=%s",
                event.event_type.value,
                event.lock_name,
                event.lock_id,
                event.holder_id,
            )


class RecordingEventSink:
    """Keeps every emitted event in memory, for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: list[LockEvent] = []

    def emit(self, event: LockEvent) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> list[LockEventType]:
        return [event.event_type for event in self.events]

    def of_type(self, event_type: LockEventType) -> list[LockEvent]:
        return [event for event in self.events if event.event_type is event_type]

    def clear(self) -> None:
        self.events.clear()


__all__ = [
    "LockEvent",
    "LockEventSink",
    "LockEventType",
    "LoggingEventSink",
    "NullEventSink",
    "RecordingEventSink",
]
