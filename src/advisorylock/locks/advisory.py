"""
Transaction-scoped advisory lock.

An ``AdvisoryLock`` binds one lock identifier to one session and runs the
acquire/release protocol against it:

- ``acquire()`` opens a transaction and calls the store's non-blocking
  try-lock. On success the transaction stays open and the lock is held for
  the rest of its life; on contention the transaction is rolled back.
- ``release()`` commits the transaction, which ends the lock's scope.

Exclusivity is decided by the store alone. Any number of instances may
exist in-process for the same name; at most one of them can be held.

Usage:
    >>> lock = AdvisoryLock(session, "reports:nightly")
    >>> if await lock.acquire():
    ...     try:
    ...         await build_nightly_report()
    ...     finally:
    ...         await lock.release()
"""

from __future__ import annotations

import asyncio
from enum import Enum

from advisorylock.exceptions import AcquisitionError, LockStateError, SessionError
from advisorylock.locks.hashing import hash_lock_key
from advisorylock.locks.protocols import LockSession
from advisorylock.observability import (
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_HOLDER_ID,
    ATTR_LOCK_ID,
    ATTR_LOCK_NAME,
    ATTR_LOCK_TIMEOUT,
    LockEvent,
    LockEventSink,
    LockEventType,
    LoggingEventSink,
    Tracer,
    create_tracer,
)

DEFAULT_LOCK_TIMEOUT = 30.0
"""Default deadline in seconds for the round trips of one acquisition attempt."""


class LockState(Enum):
    """
    Lifecycle of an AdvisoryLock instance.

    UNATTEMPTED -> HELD -> RELEASED | RELEASE_FAILED
    UNATTEMPTED -> NOT_ACQUIRED | FAILED
    """

    UNATTEMPTED = "unattempted"
    HELD = "held"
    NOT_ACQUIRED = "not_acquired"
    FAILED = "failed"
    RELEASED = "released"
    RELEASE_FAILED = "release_failed"


class AdvisoryLock:
    """
    Acquire/release protocol for one transaction-scoped advisory lock.

    Each instance attempts acquisition at most once. A new attempt needs a
    new instance, and therefore a new transaction. There is no
    destructor-driven cleanup: a held lock must be released explicitly, or
    it stays held until the session's transaction ends some other way.

    Attributes:
        name: Logical lock name
        lock_id: Numeric identifier derived from ``name``
        timeout: Deadline in seconds for the begin and try-lock round trips.
            The try-lock itself never waits for other holders; the deadline
            only bounds network latency. None disables it.
        holder_id: Optional identifier for this contender (for debugging)
    """

    def __init__(
        self,
        session: LockSession | None,
        name: str,
        *,
        timeout: float | None = DEFAULT_LOCK_TIMEOUT,
        holder_id: str | None = None,
        event_sink: LockEventSink | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the lock.

        Args:
            session: Session this lock exclusively owns, or None
            name: Logical lock name
            timeout: Acquisition deadline in seconds (None = no deadline)
            holder_id: Optional identifier for this contender
            event_sink: Receiver for lock-state events. Defaults to a
                LoggingEventSink.
            tracer: Optional custom Tracer instance. If not provided, one is
                created based on enable_tracing setting.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                Ignored if tracer is explicitly provided.
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive or None, got {timeout}")

        self._session = session
        self._name = name
        self._lock_id = hash_lock_key(name)
        self._timeout = timeout
        self._holder_id = holder_id
        self._sink = event_sink or LoggingEventSink()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._state = LockState.UNATTEMPTED

    @property
    def name(self) -> str:
        return self._name

    @property
    def lock_id(self) -> int:
        return self._lock_id

    @property
    def session(self) -> LockSession | None:
        return self._session

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def holder_id(self) -> str | None:
        return self._holder_id

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def held(self) -> bool:
        """True only between a successful acquire and the matching release."""
        return self._state is LockState.HELD

    async def acquire(self) -> bool:
        """
        Attempt the lock once, without waiting for other holders.

        Returns:
            True if the lock is now held (its transaction stays open),
            False if another transaction holds it (the transaction has been
            rolled back)

        Raises:
            SessionError: If no session is bound
            LockStateError: If this instance already attempted acquisition
            AcquisitionError: If the begin or try-lock round trip failed or
                ran past ``timeout``. The original error is chained as
                ``__cause__``. A best-effort rollback has been issued.
        """
        if self._session is None:
            raise SessionError(self._name)
        if self._state is not LockState.UNATTEMPTED:
            raise LockStateError(self._name, self._state.value)

        session = self._session

        with self._tracer.span(
            "advisorylock.acquire",
            {
                ATTR_LOCK_NAME: self._name,
                ATTR_LOCK_ID: self._lock_id,
                ATTR_LOCK_TIMEOUT: self._timeout if self._timeout is not None else -1,
                ATTR_LOCK_HOLDER_ID: self._holder_id or "",
            },
        ) as span:
            self._emit(LockEventType.ACQUIRE_ATTEMPTED)

            try:
                async with asyncio.timeout(self._timeout):
                    await session.begin()
                    acquired = await session.try_advisory_xact_lock(self._lock_id)
            except Exception as e:
                self._state = LockState.FAILED
                await self._rollback_quietly()
                reason = (
                    f"Timeout after {self._timeout}s"
                    if isinstance(e, TimeoutError)
                    else f"Database error: {e!r}"
                )
                self._emit(LockEventType.ACQUIRE_FAILED, error=reason)
                raise AcquisitionError(self._name, self._lock_id, reason) from e

            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, bool(acquired))

            if acquired:
                self._state = LockState.HELD
                self._emit(LockEventType.ACQUIRED)
                return True

            try:
                await session.rollback()
            except Exception as e:
                self._state = LockState.FAILED
                self._emit(LockEventType.ROLLBACK_FAILED, error=repr(e))
                raise AcquisitionError(
                    self._name,
                    self._lock_id,
                    f"Rollback after contention failed: {e!r}",
                ) from e
            self._state = LockState.NOT_ACQUIRED
            self._emit(LockEventType.NOT_ACQUIRED)
            return False

    async def release(self) -> bool:
        """
        Release the lock by committing its transaction.

        Never raises: this is usually called from cleanup paths. A commit
        failure is reported through the return value and a RELEASE_FAILED
        event, and a rollback is attempted as a second chance.

        Returns:
            True if the transaction was committed, False if the lock was not
            held or the commit failed
        """
        if self._state is not LockState.HELD or self._session is None:
            self._emit(LockEventType.RELEASE_SKIPPED)
            return False

        with self._tracer.span(
            "advisorylock.release",
            {
                ATTR_LOCK_NAME: self._name,
                ATTR_LOCK_ID: self._lock_id,
                ATTR_LOCK_HOLDER_ID: self._holder_id or "",
            },
        ):
            try:
                await self._session.commit()
            except Exception as e:
                self._state = LockState.RELEASE_FAILED
                await self._rollback_quietly()
                self._emit(LockEventType.RELEASE_FAILED, error=repr(e))
                return False

            self._state = LockState.RELEASED
            self._emit(LockEventType.RELEASED)
            return True

    async def _rollback_quietly(self) -> None:
        """Roll back the session, reporting instead of raising on failure."""
        if self._session is None:
            return
        try:
            await self._session.rollback()
        except Exception as e:
            self._emit(LockEventType.ROLLBACK_FAILED, error=repr(e))

    def _emit(self, event_type: LockEventType, error: str | None = None) -> None:
        self._sink.emit(
            LockEvent(
                event_type=event_type,
                lock_name=self._name,
                lock_id=self._lock_id,
                holder_id=self._holder_id,
                error=error,
            )
        )

    def __repr__(self) -> str:
        return (
            f"AdvisoryLock(name={self._name!r}, lock_id={self._lock_id}, "
            f"state={self._state.value})"
        )


__all__ = ["DEFAULT_LOCK_TIMEOUT", "AdvisoryLock", "LockState"]
