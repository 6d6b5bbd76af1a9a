"""
Concurrency harness for the advisory lock protocol.

Races N independent sessions for the same logical lock and reports who
won. This is a verification and demo driver rather than a coordination
API; its postcondition is the property the lock protocol exists for:
at most one contender acquires the lock.

Example:
    >>> pool = PostgreSQLSessionPool(engine)
    >>> summary = await race(pool, "test-connections", concurrency=3)
    >>> summary.success_count
    1
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from advisorylock.exceptions import SessionPoolError
from advisorylock.locks.advisory import DEFAULT_LOCK_TIMEOUT, AdvisoryLock
from advisorylock.locks.hashing import hash_lock_key
from advisorylock.locks.protocols import LockSession, SessionPool
from advisorylock.observability import (
    ATTR_LOCK_ID,
    ATTR_LOCK_NAME,
    ATTR_RACE_CONCURRENCY,
    ATTR_RACE_SUCCESS_COUNT,
    LockEventSink,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_TIMEOUT = 30.0


@dataclass(frozen=True)
class AttemptResult:
    """
    Outcome of one contender in a race.

    Attributes:
        index: Zero-based contender index
        acquired: Whether this contender acquired the lock
        released: Whether the lock was released afterwards (None if it was
            never held)
        error: Description of the acquisition error, if the attempt failed
    """

    index: int
    acquired: bool
    released: bool | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class RaceSummary:
    """
    Aggregated outcome of a race.

    Attributes:
        lock_name: Logical lock name every contender targeted
        lock_id: Identifier derived from ``lock_name``
        attempts: Per-contender results, ordered by index
    """

    lock_name: str
    lock_id: int
    attempts: tuple[AttemptResult, ...]

    @property
    def concurrency(self) -> int:
        return len(self.attempts)

    @property
    def success_count(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.acquired)

    @property
    def failure_count(self) -> int:
        return self.concurrency - self.success_count

    @property
    def error_count(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.failed)


class ConcurrencyHarness:
    """
    Drives concurrent AdvisoryLock attempts against one session pool.

    Args:
        pool: Pool that hands out independent sessions
        timeout: Per-attempt acquisition deadline in seconds
        checkout_timeout: Deadline in seconds for obtaining every session
            of a race (None waits indefinitely)
        event_sink: Receiver for lock-state events of every contender
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing.
            Ignored if tracer is explicitly provided.
    """

    def __init__(
        self,
        pool: SessionPool,
        *,
        timeout: float | None = DEFAULT_LOCK_TIMEOUT,
        checkout_timeout: float | None = DEFAULT_CHECKOUT_TIMEOUT,
        event_sink: LockEventSink | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._pool = pool
        self._timeout = timeout
        self._checkout_timeout = checkout_timeout
        self._event_sink = event_sink
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def race(self, name: str, concurrency: int = 3) -> RaceSummary:
        """
        Race ``concurrency`` contenders for the lock ``name``.

        Every session obtained from the pool is returned to it on every
        exit path, after its transaction has been committed or rolled back.

        Args:
            name: Logical lock name
            concurrency: Number of contenders (>= 1)

        Returns:
            RaceSummary with one AttemptResult per contender

        Raises:
            ValueError: If concurrency is less than 1 or exceeds the pool's
                capacity
            SessionPoolError: If the sessions could not all be checked out
                within ``checkout_timeout``
            Exception: Whatever the pool raised if sessions could not be
                checked out (sessions already obtained are returned first)
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        capacity = self._pool.capacity
        if capacity is not None and concurrency > capacity:
            raise ValueError(f"concurrency {concurrency} exceeds pool capacity {capacity}")

        lock_id = hash_lock_key(name)

        with self._tracer.span(
            "advisorylock.race",
            {
                ATTR_LOCK_NAME: name,
                ATTR_LOCK_ID: lock_id,
                ATTR_RACE_CONCURRENCY: concurrency,
            },
        ) as span:
            sessions: list[LockSession] = []
            try:
                await self._checkout(concurrency, sessions)
                locks = [
                    AdvisoryLock(
                        session,
                        name,
                        timeout=self._timeout,
                        holder_id=f"contender-{index + 1}",
                        event_sink=self._event_sink,
                        tracer=self._tracer,
                    )
                    for index, session in enumerate(sessions)
                ]

                logger.debug(
                    "Starting race: name=%s, lock_id=%d, concurrency=%d",
                    name,
                    lock_id,
                    concurrency,
                )
                attempts = await asyncio.gather(
                    *(self._attempt(index, lock) for index, lock in enumerate(locks))
                )

                results = []
                for attempt, lock in zip(attempts, locks, strict=True):
                    if attempt.acquired:
                        released = await lock.release()
                        attempt = AttemptResult(
                            index=attempt.index,
                            acquired=True,
                            released=released,
                        )
                    results.append(attempt)
            finally:
                await self._return_all(sessions)

            summary = RaceSummary(lock_name=name, lock_id=lock_id, attempts=tuple(results))
            if span is not None:
                span.set_attribute(ATTR_RACE_SUCCESS_COUNT, summary.success_count)
            return summary

    async def _checkout(self, count: int, sessions: list[LockSession]) -> None:
        """
        Check out ``count`` sessions into ``sessions``.

        Every session the pool hands out lands in ``sessions``, even if the
        checkout is interrupted part way, so the caller can return them all.
        """
        tasks = [asyncio.create_task(self._pool.acquire()) for _ in range(count)]
        try:
            async with asyncio.timeout(self._checkout_timeout):
                await asyncio.gather(*tasks)
        except TimeoutError as e:
            raise SessionPoolError(
                f"Timed out after {self._checkout_timeout}s checking out {count} sessions"
            ) from e
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks)
            for task in tasks:
                if not task.cancelled() and task.exception() is None:
                    sessions.append(task.result())

    async def _attempt(self, index: int, lock: AdvisoryLock) -> AttemptResult:
        try:
            acquired = await lock.acquire()
        except Exception as e:
            logger.warning("Contender %d failed to attempt the lock: %s", index + 1, e)
            return AttemptResult(index=index, acquired=False, error=str(e))
        return AttemptResult(index=index, acquired=acquired)

    async def _return_all(self, sessions: list[LockSession]) -> None:
        for session in sessions:
            try:
                await self._pool.release(session)
            except Exception as e:
                logger.error("Error returning session to pool: session=%r, error=%s", session, e)


async def race(
    pool: SessionPool,
    name: str,
    concurrency: int = 3,
    **options: Any,
) -> RaceSummary:
    """
    Race ``concurrency`` contenders for ``name`` using a one-off harness.

    Args:
        pool: Pool that hands out independent sessions
        name: Logical lock name
        concurrency: Number of contenders
        **options: Keyword arguments for ConcurrencyHarness

    Returns:
        RaceSummary of the race
    """
    return await ConcurrencyHarness(pool, **options).race(name, concurrency)


__all__ = [
    "DEFAULT_CHECKOUT_TIMEOUT",
    "AttemptResult",
    "ConcurrencyHarness",
    "RaceSummary",
    "race",
]
