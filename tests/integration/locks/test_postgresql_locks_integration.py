"""
Integration tests for advisory locks against a real PostgreSQL server.

These tests verify:
- Acquire and release through pg_try_advisory_xact_lock
- Exclusion between independent connections
- The race postcondition (at most one winner)
- Cleanup after failed attempts and dropped connections
- The command line demo end to end
"""

from __future__ import annotations

import io
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text

from advisorylock.cli import EXIT_OK, main
from advisorylock.exceptions import AcquisitionError
from advisorylock.harness import ConcurrencyHarness, race
from advisorylock.locks import (
    AdvisoryLock,
    LockSession,
    LockState,
    PostgreSQLLockSession,
    PostgreSQLSessionPool,
    SessionPool,
    probe_server,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Mark all tests in this module as integration tests requiring PostgreSQL
pytestmark = [pytest.mark.integration, pytest.mark.postgres]

LockCounter = Callable[[], Awaitable[int]]


# =============================================================================
# Adapters
# =============================================================================


class TestAdapters:
    """Tests for the PostgreSQL session and pool adapters."""

    async def test_probe_server(self, postgres_engine: AsyncEngine) -> None:
        info = await probe_server(postgres_engine)

        assert info.version.startswith("PostgreSQL")
        assert info.short_version.startswith("PostgreSQL 16")
        assert info.server_time.tzinfo is not None

    async def test_adapters_satisfy_protocols(self, postgres_pool: PostgreSQLSessionPool) -> None:
        assert isinstance(postgres_pool, SessionPool)
        session = await postgres_pool.acquire()
        try:
            assert isinstance(session, LockSession)
            assert isinstance(session, PostgreSQLLockSession)
        finally:
            await postgres_pool.release(session)

    async def test_sessions_use_distinct_backends(
        self,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        sessions = [await postgres_pool.acquire() for _ in range(3)]
        try:
            pids = set()
            for session in sessions:
                result = await session.connection.execute(text("SELECT pg_backend_pid()"))
                pids.add(result.scalar_one())
                await session.rollback()
            assert len(pids) == 3
        finally:
            for session in sessions:
                await postgres_pool.release(session)


# =============================================================================
# Lock Protocol
# =============================================================================


class TestLockProtocol:
    """Tests for AdvisoryLock against PostgreSQL."""

    async def test_acquire_contend_release(
        self,
        postgres_pool: PostgreSQLSessionPool,
        advisory_lock_count: LockCounter,
    ) -> None:
        first_session = await postgres_pool.acquire()
        second_session = await postgres_pool.acquire()
        try:
            holder = AdvisoryLock(first_session, "it:protocol:1")
            contender = AdvisoryLock(second_session, "it:protocol:1")

            assert await holder.acquire() is True
            assert first_session.in_transaction()
            assert await advisory_lock_count() == 1

            assert await contender.acquire() is False
            assert not second_session.in_transaction()

            assert await holder.release() is True
            assert await holder.release() is False
            assert await advisory_lock_count() == 0

            successor = AdvisoryLock(second_session, "it:protocol:1")
            assert await successor.acquire() is True
            assert await successor.release() is True
        finally:
            await postgres_pool.release(first_session)
            await postgres_pool.release(second_session)

    async def test_colliding_names_share_one_lock(
        self,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        first_session = await postgres_pool.acquire()
        second_session = await postgres_pool.acquire()
        try:
            first = AdvisoryLock(first_session, "Aa")
            second = AdvisoryLock(second_session, "BB")

            assert await first.acquire() is True
            assert await second.acquire() is False
            await first.release()
        finally:
            await postgres_pool.release(first_session)
            await postgres_pool.release(second_session)

    async def test_returned_session_does_not_leak_lock(
        self,
        postgres_pool: PostgreSQLSessionPool,
        advisory_lock_count: LockCounter,
    ) -> None:
        """Test that the pool rolls back a session returned while holding a lock."""
        session = await postgres_pool.acquire()
        lock = AdvisoryLock(session, "it:leak:1")
        assert await lock.acquire()

        await postgres_pool.release(session)

        assert postgres_pool.reclaimed_count == 1
        assert await advisory_lock_count() == 0

    async def test_terminated_backend_raises_acquisition_error(
        self,
        postgres_engine: AsyncEngine,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        """Test that a dropped connection surfaces as AcquisitionError."""
        session = await postgres_pool.acquire()
        try:
            result = await session.connection.execute(text("SELECT pg_backend_pid()"))
            pid = result.scalar_one()
            await session.rollback()

            async with postgres_engine.connect() as admin:
                await admin.execute(text("SELECT pg_terminate_backend(:pid, 5000)"), {"pid": pid})

            lock = AdvisoryLock(session, "it:terminated:1", timeout=5.0)
            with pytest.raises(AcquisitionError):
                await lock.acquire()

            assert lock.held is False
            assert lock.state is LockState.FAILED
        finally:
            await postgres_pool.release(session)


# =============================================================================
# Races
# =============================================================================


class TestRace:
    """Tests for the harness against PostgreSQL."""

    async def test_three_connections_one_winner(
        self,
        postgres_pool: PostgreSQLSessionPool,
        advisory_lock_count: LockCounter,
    ) -> None:
        summary = await race(postgres_pool, "test-connections", 3)

        assert summary.success_count == 1
        assert summary.failure_count == 2
        assert summary.error_count == 0
        assert await advisory_lock_count() == 0

    async def test_at_most_one_winner_over_many_races(
        self,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        harness = ConcurrencyHarness(postgres_pool)
        for round_number in range(10):
            summary = await harness.race(f"it:race:{round_number}", concurrency=8)
            assert summary.success_count <= 1
            assert summary.error_count == 0

    async def test_outside_holder_means_no_winner(
        self,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        outsider_session = await postgres_pool.acquire()
        try:
            outsider = AdvisoryLock(outsider_session, "it:race:held")
            assert await outsider.acquire()

            summary = await race(postgres_pool, "it:race:held", 3)

            assert summary.success_count == 0
            await outsider.release()
        finally:
            await postgres_pool.release(outsider_session)

    async def test_race_larger_than_engine_pool_rejected(
        self,
        postgres_pool: PostgreSQLSessionPool,
    ) -> None:
        assert postgres_pool.capacity == 10

        with pytest.raises(ValueError, match="exceeds pool capacity"):
            await race(postgres_pool, "it:race:oversized", 11)
        assert postgres_pool.checked_out == 0


# =============================================================================
# Command Line Demo
# =============================================================================


class TestCommandLine:
    def test_demo_run(
        self,
        postgres_url: str,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DATABASE_URL", postgres_url)
        out = io.StringIO()

        assert main(["--concurrency", "3"], out=out) == EXIT_OK

        text_out = out.getvalue()
        assert "Database connection successful" in text_out
        assert "Summary: 1 out of 3 instances acquired the lock" in text_out
