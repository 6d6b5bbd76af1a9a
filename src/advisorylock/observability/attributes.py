"""
Standard span attributes for advisorylock.

These follow OpenTelemetry semantic conventions where applicable.
"""

# =============================================================================
# Database Attributes (OTEL semantic)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'memory')."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_NAME = "advisorylock.lock.name"
"""Logical lock name (string)."""

ATTR_LOCK_ID = "advisorylock.lock.id"
"""Numeric lock identifier derived from the name (integer)."""

ATTR_LOCK_TIMEOUT = "advisorylock.lock.timeout"
"""Acquisition deadline in seconds, -1 when unbounded (float)."""

ATTR_LOCK_ACQUIRED = "advisorylock.lock.acquired"
"""Whether the lock was acquired (boolean)."""

ATTR_LOCK_HOLDER_ID = "advisorylock.lock.holder_id"
"""Identifier of the contender attempting the lock (string)."""

# =============================================================================
# Race Attributes
# =============================================================================

ATTR_RACE_CONCURRENCY = "advisorylock.race.concurrency"
"""Number of contenders in a race (integer)."""

ATTR_RACE_SUCCESS_COUNT = "advisorylock.race.success_count"
"""Number of contenders that acquired the lock (integer)."""

__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_HOLDER_ID",
    "ATTR_RACE_CONCURRENCY",
    "ATTR_RACE_SUCCESS_COUNT",
]
