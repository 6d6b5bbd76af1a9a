"""
Collaborator protocols for the lock protocol.

The lock core talks to the database only through these two protocols,
which keeps it independent of the driver and lets tests substitute the
in-memory implementations.

Contract with the store:
    ``try_advisory_xact_lock`` must be non-blocking and transaction-scoped:
    it returns immediately, and the lock it grants is released automatically
    when the owning transaction ends (commit or rollback). A session that is
    abandoned with an open transaction keeps holding its locks for as long as
    that transaction lives, which is why pools roll back open transactions
    when a session is returned.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LockSession(Protocol):
    """One connection/transaction context to the store."""

    async def begin(self) -> None:
        """Start a transaction."""
        ...

    async def commit(self) -> None:
        """Commit the open transaction, releasing its advisory locks."""
        ...

    async def rollback(self) -> None:
        """Roll back the open transaction, releasing its advisory locks."""
        ...

    async def try_advisory_xact_lock(self, lock_id: int) -> bool:
        """
        Attempt a transaction-scoped advisory lock without waiting.

        Args:
            lock_id: Numeric lock identifier

        Returns:
            True if this transaction now holds the lock, False if another
            transaction holds it
        """
        ...

    def in_transaction(self) -> bool:
        """Return True while a transaction is open on this session."""
        ...


@runtime_checkable
class SessionPool(Protocol):
    """Hands out sessions, exclusively, one holder at a time."""

    @property
    def capacity(self) -> int | None:
        """Most sessions checked out at once, or None if unknown."""
        ...

    async def acquire(self) -> LockSession:
        """Check out a session, waiting until one is available."""
        ...

    async def release(self, session: LockSession) -> None:
        """Return a previously checked-out session."""
        ...


__all__ = ["LockSession", "SessionPool"]
