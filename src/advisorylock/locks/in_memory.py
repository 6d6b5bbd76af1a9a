"""
In-memory lock store, session, and session pool.

Useful for testing and development. Models PostgreSQL's
``pg_try_advisory_xact_lock`` semantics inside one process:

- a lock is owned by the transaction that took it
- the owning session may take it again (reentrant)
- every lock of a session is dropped when its transaction ends

NOT suitable for coordinating separate processes.

Example:
    >>> from advisorylock.harness import race
    >>> store = InMemoryLockStore()
    >>> pool = InMemorySessionPool(store, max_size=3)
    >>> summary = await race(pool, "reports:nightly", concurrency=3)
    >>> summary.success_count
    1
"""

from __future__ import annotations

import asyncio
import itertools
import logging

from advisorylock.exceptions import SessionPoolError

logger = logging.getLogger(__name__)

OPERATIONS = frozenset({"begin", "commit", "rollback", "try_lock"})
"""Session operations that accept injected failures."""


class InMemoryLockStore:
    """
    Process-local advisory lock table.

    Thread-safety:
        Uses an asyncio lock around the lock table. Safe for concurrent
        async operations within a single event loop.

    Failure injection:
        ``fail_on("try_lock", ConnectionRefusedError())`` makes every
        subsequent ``try_lock`` raise until ``clear_failures()`` is called.
        ``set_available(False)`` makes every operation raise
        ``ConnectionRefusedError``, like an unreachable server.
    """

    def __init__(self) -> None:
        self._owners: dict[int, int] = {}
        self._lock = asyncio.Lock()
        self._failures: dict[str, BaseException] = {}
        self._available = True
        self._session_ids = itertools.count(1)

    def session(self) -> InMemoryLockSession:
        """Open a new session against this store."""
        return InMemoryLockSession(self, next(self._session_ids))

    def owner_of(self, lock_id: int) -> int | None:
        """Return the id of the session holding ``lock_id``, if any."""
        return self._owners.get(lock_id)

    @property
    def held_lock_ids(self) -> frozenset[int]:
        return frozenset(self._owners)

    def fail_on(self, operation: str, error: BaseException | None = None) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation {operation!r}, expected one of {sorted(OPERATIONS)}")
        self._failures[operation] = error or ConnectionError(f"injected {operation} failure")

    def clear_failures(self) -> None:
        self._failures.clear()

    def set_available(self, available: bool) -> None:
        self._available = available

    def check(self, operation: str) -> None:
        """Raise the failure configured for ``operation``, if any."""
        if not self._available:
            raise ConnectionRefusedError("in-memory lock store is unreachable")
        error = self._failures.get(operation)
        if error is not None:
            raise error

    async def try_lock(self, session_id: int, lock_id: int) -> bool:
        # Yield so concurrent contenders interleave like network round trips
        await asyncio.sleep(0)
        async with self._lock:
            owner = self._owners.get(lock_id)
            if owner is None or owner == session_id:
                self._owners[lock_id] = session_id
                return True
            return False

    async def release_all(self, session_id: int) -> int:
        """Drop every lock owned by ``session_id``; returns how many."""
        async with self._lock:
            owned = [lock_id for lock_id, owner in self._owners.items() if owner == session_id]
            for lock_id in owned:
                del self._owners[lock_id]
            return len(owned)


class InMemoryLockSession:
    """
    Session against an InMemoryLockStore.

    Like a real connection, an open transaction is gone after a failed
    commit or rollback; only ``begin`` and ``try_lock`` failures leave it
    open.
    """

    def __init__(self, store: InMemoryLockStore, session_id: int) -> None:
        self._store = store
        self._session_id = session_id
        self._in_transaction = False

    @property
    def session_id(self) -> int:
        return self._session_id

    def in_transaction(self) -> bool:
        return self._in_transaction

    async def begin(self) -> None:
        await asyncio.sleep(0)
        self._store.check("begin")
        if self._in_transaction:
            raise RuntimeError(f"Session {self._session_id} already has an open transaction")
        self._in_transaction = True

    async def try_advisory_xact_lock(self, lock_id: int) -> bool:
        self._store.check("try_lock")
        if not self._in_transaction:
            raise RuntimeError("try_advisory_xact_lock requires an open transaction")
        return await self._store.try_lock(self._session_id, lock_id)

    async def commit(self) -> None:
        await self._end_transaction("commit")

    async def rollback(self) -> None:
        await self._end_transaction("rollback")

    async def _end_transaction(self, operation: str) -> None:
        was_open = self._in_transaction
        self._in_transaction = False
        if was_open:
            await self._store.release_all(self._session_id)
        self._store.check(operation)

    def __repr__(self) -> str:
        return f"InMemoryLockSession(id={self._session_id}, in_transaction={self._in_transaction})"


class InMemorySessionPool:
    """
    Bounded pool of InMemoryLockSession objects.

    ``acquire`` waits while ``max_size`` sessions are checked out. Sessions
    returned with an open transaction are rolled back first, so no
    transaction (and no lock) leaks into the pool.
    """

    def __init__(self, store: InMemoryLockStore, max_size: int = 10) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._store = store
        self._max_size = max_size
        self._idle: list[InMemoryLockSession] = []
        self._checked_out: set[InMemoryLockSession] = set()
        self._slots = asyncio.Semaphore(max_size)
        self._lock = asyncio.Lock()
        self.reclaimed_count = 0

    @property
    def store(self) -> InMemoryLockStore:
        return self._store

    @property
    def capacity(self) -> int:
        return self._max_size

    @property
    def checked_out(self) -> int:
        return len(self._checked_out)

    async def acquire(self) -> InMemoryLockSession:
        await self._slots.acquire()
        try:
            async with self._lock:
                session = self._idle.pop() if self._idle else self._store.session()
                self._checked_out.add(session)
        except BaseException:
            self._slots.release()
            raise
        return session

    async def release(self, session: InMemoryLockSession) -> None:
        async with self._lock:
            if session not in self._checked_out:
                raise SessionPoolError(f"{session!r} was not checked out from this pool")
            self._checked_out.discard(session)

        try:
            if session.in_transaction():
                logger.warning(
                    "Session returned with an open transaction, rolling back: session=%d",
                    session.session_id,
                )
                self.reclaimed_count += 1
                try:
                    await session.rollback()
                except Exception as e:
                    logger.warning(
                        "Error rolling back returned session: session=%d, error=%s",
                        session.session_id,
                        e,
                    )
            async with self._lock:
                self._idle.append(session)
        finally:
            self._slots.release()


__all__ = ["InMemoryLockSession", "InMemoryLockStore", "InMemorySessionPool"]
