"""
advisorylock - Transaction-scoped PostgreSQL advisory locks for asyncio.

This library provides:
- A deterministic lock-name hash shared by cooperating processes
- AdvisoryLock, a non-blocking acquire/release protocol bound to one
  transaction
- PostgreSQL (SQLAlchemy + asyncpg) and in-memory session pools
- A concurrency harness that races contenders for one lock
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("advisorylock-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from advisorylock.config import LockConfig
from advisorylock.exceptions import (
    AcquisitionError,
    AdvisoryLockError,
    ConfigurationError,
    LockStateError,
    SessionError,
    SessionPoolError,
)
from advisorylock.harness import (
    DEFAULT_CHECKOUT_TIMEOUT,
    AttemptResult,
    ConcurrencyHarness,
    RaceSummary,
    race,
)
from advisorylock.locks import (
    DEFAULT_LOCK_TIMEOUT,
    LOCK_ID_MAX,
    AdvisoryLock,
    InMemoryLockSession,
    InMemoryLockStore,
    InMemorySessionPool,
    LockSession,
    LockState,
    PostgreSQLLockSession,
    PostgreSQLSessionPool,
    SessionPool,
    hash_lock_key,
)
from advisorylock.observability import (
    LockEvent,
    LockEventSink,
    LockEventType,
    LoggingEventSink,
    NullEventSink,
    RecordingEventSink,
)

__all__ = [
    "__version__",
    # Config
    "LockConfig",
    # Exceptions
    "AcquisitionError",
    "AdvisoryLockError",
    "ConfigurationError",
    "LockStateError",
    "SessionError",
    "SessionPoolError",
    # Harness
    "DEFAULT_CHECKOUT_TIMEOUT",
    "AttemptResult",
    "ConcurrencyHarness",
    "RaceSummary",
    "race",
    # Locks
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
    "SessionPool",
    "hash_lock_key",
    # Events
    "LockEvent",
    "LockEventSink",
    "LockEventType",
    "LoggingEventSink",
    "NullEventSink",
    "RecordingEventSink",
]
