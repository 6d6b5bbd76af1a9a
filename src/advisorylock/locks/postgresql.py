"""
PostgreSQL session and pool adapters for advisory locks.

Uses SQLAlchemy's asyncio extension over asyncpg. Each session wraps one
``AsyncConnection`` checked out of an ``AsyncEngine`` connection pool, and
takes locks with ``pg_try_advisory_xact_lock``:

- never waits for another holder, returns true/false immediately
- the lock belongs to the current transaction
- the lock is released automatically at COMMIT or ROLLBACK

Usage:
    >>> engine = create_lock_engine(config)
    >>> pool = PostgreSQLSessionPool(engine)
    >>> session = await pool.acquire()
    >>> try:
    ...     lock = AdvisoryLock(session, "reports:nightly")
    ...     if await lock.acquire():
    ...         await lock.release()
    ... finally:
    ...     await pool.release(session)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from advisorylock.exceptions import SessionPoolError

if TYPE_CHECKING:
    from advisorylock.config import LockConfig

logger = logging.getLogger(__name__)

TRY_XACT_LOCK: Final = text("SELECT pg_try_advisory_xact_lock(:lock_id)")
SERVER_INFO: Final = text("SELECT now(), version()")


@dataclass(frozen=True)
class ServerInfo:
    """
    Result of a connectivity probe.

    Attributes:
        server_time: Database server clock at probe time
        version: Full ``version()`` string
    """

    server_time: datetime
    version: str

    @property
    def short_version(self) -> str:
        """First two words of the version string, e.g. ``PostgreSQL 15.4``."""
        return " ".join(self.version.split()[:2])


class PostgreSQLLockSession:
    """
    LockSession backed by one SQLAlchemy AsyncConnection.

    Args:
        connection: Connection owned exclusively by this session
    """

    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> AsyncConnection:
        return self._connection

    async def begin(self) -> None:
        await self._connection.begin()

    async def commit(self) -> None:
        await self._connection.commit()

    async def rollback(self) -> None:
        await self._connection.rollback()

    async def try_advisory_xact_lock(self, lock_id: int) -> bool:
        result = await self._connection.execute(TRY_XACT_LOCK, {"lock_id": lock_id})
        return bool(result.scalar())

    def in_transaction(self) -> bool:
        return self._connection.in_transaction()


class PostgreSQLSessionPool:
    """
    SessionPool over an AsyncEngine's connection pool.

    Each ``acquire`` checks out a dedicated connection, so every session is
    an independent database backend. ``release`` rolls back any transaction
    still open on the session before returning its connection, so an
    abandoned lock never outlives its holder's checkout.

    Note:
        Size the engine pool (``pool_size`` plus ``max_overflow``) for the
        number of concurrent sessions; ``acquire`` waits up to the engine's
        ``pool_timeout`` when it is exhausted. Pass the same number as
        ``capacity`` so a race larger than the engine pool is rejected
        up front.
    """

    def __init__(self, engine: AsyncEngine, capacity: int | None = None) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._engine = engine
        self._capacity = capacity
        self._checked_out: set[PostgreSQLLockSession] = set()
        self._lock = asyncio.Lock()
        self.reclaimed_count = 0

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def capacity(self) -> int | None:
        return self._capacity

    @property
    def checked_out(self) -> int:
        return len(self._checked_out)

    async def acquire(self) -> PostgreSQLLockSession:
        connection = await self._engine.connect()
        session = PostgreSQLLockSession(connection)
        try:
            async with self._lock:
                self._checked_out.add(session)
        except BaseException:
            await connection.close()
            raise
        return session

    async def release(self, session: PostgreSQLLockSession) -> None:
        async with self._lock:
            if session not in self._checked_out:
                raise SessionPoolError(f"{session!r} was not checked out from this pool")
            self._checked_out.discard(session)

        connection = session.connection
        if connection.in_transaction():
            logger.warning("Session returned with an open transaction, rolling back")
            self.reclaimed_count += 1
            try:
                await connection.rollback()
            except Exception as e:
                logger.warning(
                    "Error rolling back returned session, invalidating connection: error=%s",
                    e,
                )
                await connection.invalidate()

        await connection.close()

    async def dispose(self) -> None:
        """Close every pooled connection of the engine."""
        await self._engine.dispose()


def create_lock_engine(config: LockConfig) -> AsyncEngine:
    """
    Create an asyncpg-backed AsyncEngine sized for a lock race.

    Args:
        config: Connection and pool settings

    Returns:
        AsyncEngine with ``pool_size`` connections and no overflow
    """
    return create_async_engine(
        config.async_database_url,
        pool_size=config.pool_size,
        max_overflow=0,
        pool_timeout=config.connect_timeout,
        pool_pre_ping=True,
        connect_args={"timeout": config.connect_timeout},
    )


async def probe_server(engine: AsyncEngine) -> ServerInfo:
    """
    Check connectivity and report the server clock and version.

    Raises:
        Whatever the driver raises when the server is unreachable
        (e.g. ``OSError`` subclasses for DNS or refused connections).
    """
    async with engine.connect() as connection:
        result = await connection.execute(SERVER_INFO)
        row = result.one()
    return ServerInfo(server_time=row[0], version=row[1])


__all__ = [
    "TRY_XACT_LOCK",
    "PostgreSQLLockSession",
    "PostgreSQLSessionPool",
    "ServerInfo",
    "create_lock_engine",
    "probe_server",
]
