"""
Unit tests for the in-memory lock store, session, and session pool.
"""

from __future__ import annotations

import asyncio

import pytest

from advisorylock.exceptions import SessionPoolError
from advisorylock.locks import (
    InMemoryLockSession,
    InMemoryLockStore,
    InMemorySessionPool,
    LockSession,
    SessionPool,
)


class TestInMemoryLockStore:
    """Tests for transaction-scoped lock bookkeeping."""

    async def test_lock_owned_by_first_transaction(
        self,
        store: InMemoryLockStore,
        session: InMemoryLockSession,
        other_session: InMemoryLockSession,
    ) -> None:
        await session.begin()
        await other_session.begin()

        assert await session.try_advisory_xact_lock(42) is True
        assert await other_session.try_advisory_xact_lock(42) is False
        assert store.owner_of(42) == session.session_id

    async def test_owner_can_take_lock_again(self, session: InMemoryLockSession) -> None:
        await session.begin()

        assert await session.try_advisory_xact_lock(42) is True
        assert await session.try_advisory_xact_lock(42) is True

    @pytest.mark.parametrize("end", ["commit", "rollback"])
    async def test_transaction_end_releases_locks(
        self,
        store: InMemoryLockStore,
        session: InMemoryLockSession,
        end: str,
    ) -> None:
        await session.begin()
        await session.try_advisory_xact_lock(1)
        await session.try_advisory_xact_lock(2)

        await getattr(session, end)()

        assert store.held_lock_ids == frozenset()
        assert not session.in_transaction()

    async def test_try_lock_requires_transaction(self, session: InMemoryLockSession) -> None:
        with pytest.raises(RuntimeError, match="open transaction"):
            await session.try_advisory_xact_lock(42)

    async def test_begin_twice_rejected(self, session: InMemoryLockSession) -> None:
        await session.begin()
        with pytest.raises(RuntimeError, match="already has an open transaction"):
            await session.begin()

    async def test_injected_failure_until_cleared(
        self,
        store: InMemoryLockStore,
        session: InMemoryLockSession,
    ) -> None:
        store.fail_on("begin", TimeoutError("connect timeout"))

        with pytest.raises(TimeoutError):
            await session.begin()

        store.clear_failures()
        await session.begin()
        assert session.in_transaction()

    def test_unknown_operation_rejected(self, store: InMemoryLockStore) -> None:
        with pytest.raises(ValueError, match="Unknown operation"):
            store.fail_on("vacuum")

    async def test_unavailable_store_refuses_connections(
        self,
        store: InMemoryLockStore,
        session: InMemoryLockSession,
    ) -> None:
        store.set_available(False)
        with pytest.raises(ConnectionRefusedError):
            await session.begin()

    def test_sessions_satisfy_protocol(self, session: InMemoryLockSession) -> None:
        assert isinstance(session, LockSession)


class TestInMemorySessionPool:
    """Tests for session checkout, return, and the open-transaction safety net."""

    def test_pool_satisfies_protocol(self, pool: InMemorySessionPool) -> None:
        assert isinstance(pool, SessionPool)

    def test_max_size_must_be_positive(self, store: InMemoryLockStore) -> None:
        with pytest.raises(ValueError, match="max_size"):
            InMemorySessionPool(store, max_size=0)

    async def test_sessions_are_distinct_while_checked_out(
        self,
        pool: InMemorySessionPool,
    ) -> None:
        sessions = await asyncio.gather(*(pool.acquire() for _ in range(5)))

        assert len({s.session_id for s in sessions}) == 5
        assert pool.checked_out == 5

        for s in sessions:
            await pool.release(s)
        assert pool.checked_out == 0

    async def test_returned_sessions_are_reused(self, pool: InMemorySessionPool) -> None:
        first = await pool.acquire()
        await pool.release(first)

        second = await pool.acquire()
        assert second is first

    async def test_acquire_waits_when_exhausted(self, store: InMemoryLockStore) -> None:
        pool = InMemorySessionPool(store, max_size=1)
        held = await pool.acquire()

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(pool.acquire(), timeout=0.05)

        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        assert not waiter.done()

        await pool.release(held)
        assert await asyncio.wait_for(waiter, timeout=1) is held

    def test_capacity_is_max_size(self, store: InMemoryLockStore) -> None:
        assert InMemorySessionPool(store, max_size=4).capacity == 4

    async def test_cancelled_waiter_does_not_consume_a_slot(
        self,
        store: InMemoryLockStore,
    ) -> None:
        pool = InMemorySessionPool(store, max_size=1)
        held = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        await pool.release(held)

        assert pool.checked_out == 0
        assert await asyncio.wait_for(pool.acquire(), timeout=1) is held

    async def test_release_unknown_session_rejected(
        self,
        pool: InMemorySessionPool,
        store: InMemoryLockStore,
    ) -> None:
        with pytest.raises(SessionPoolError):
            await pool.release(store.session())

    async def test_release_twice_rejected(self, pool: InMemorySessionPool) -> None:
        session = await pool.acquire()
        await pool.release(session)

        with pytest.raises(SessionPoolError):
            await pool.release(session)

    async def test_open_transaction_rolled_back_on_return(
        self,
        pool: InMemorySessionPool,
        store: InMemoryLockStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a session returned mid-transaction does not leak its lock."""
        session = await pool.acquire()
        await session.begin()
        await session.try_advisory_xact_lock(42)

        await pool.release(session)

        assert not session.in_transaction()
        assert store.owner_of(42) is None
        assert pool.reclaimed_count == 1
        assert "open transaction" in caplog.text
