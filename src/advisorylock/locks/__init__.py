"""
Transaction-scoped advisory locks.

Provides the lock key hash, the AdvisoryLock acquire/release protocol,
the session/pool protocols it depends on, and PostgreSQL and in-memory
implementations of those protocols.

Example:
    >>> from advisorylock.locks import AdvisoryLock, PostgreSQLSessionPool
    >>>
    >>> pool = PostgreSQLSessionPool(engine)
    >>> session = await pool.acquire()
    >>> try:
    ...     lock = AdvisoryLock(session, "reports:nightly")
    ...     if await lock.acquire():
    ...         try:
    ...             await build_nightly_report()
    ...         finally:
    ...             await lock.release()
    ... finally:
    ...     await pool.release(session)
"""

from advisorylock.locks.advisory import DEFAULT_LOCK_TIMEOUT, AdvisoryLock, LockState
from advisorylock.locks.hashing import LOCK_ID_MAX, hash_lock_key
from advisorylock.locks.in_memory import (
    InMemoryLockSession,
    InMemoryLockStore,
    InMemorySessionPool,
)
from advisorylock.locks.postgresql import (
    PostgreSQLLockSession,
    PostgreSQLSessionPool,
    ServerInfo,
    create_lock_engine,
    probe_server,
)
from advisorylock.locks.protocols import LockSession, SessionPool

__all__ = [
    "DEFAULT_LOCK_TIMEOUT",
    "LOCK_ID_MAX",
    "AdvisoryLock",
    "InMemoryLockSession",
    "InMemoryLockStore",
    "InMemorySessionPool",
    "LockSession",
    "LockState",
    "PostgreSQLLockSession",
    "PostgreSQLSessionPool",
    "ServerInfo",
    "SessionPool",
    "create_lock_engine",
    "hash_lock_key",
    "probe_server",
]
