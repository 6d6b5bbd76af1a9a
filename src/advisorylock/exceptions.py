"""Library exceptions for the advisorylock package."""

from __future__ import annotations


class AdvisoryLockError(Exception):
    """Base exception for advisorylock library."""

    pass


class ConfigurationError(AdvisoryLockError):
    """
    Raised when required connection settings are missing or invalid.

    Configuration errors are fatal: they are reported before any lock
    attempt is made and are never retried.

    Attributes:
        setting: Name of the offending setting (e.g. ``DATABASE_URL``)
    """

    def __init__(self, setting: str, message: str) -> None:
        self.setting = setting
        super().__init__(f"Invalid configuration for {setting}: {message}")


class SessionError(AdvisoryLockError):
    """
    Raised when a lock operation needs a session and none is bound.

    Attributes:
        lock_name: Logical name of the lock
    """

    def __init__(self, lock_name: str) -> None:
        self.lock_name = lock_name
        super().__init__(f"No database session bound to lock '{lock_name}'")


class AcquisitionError(AdvisoryLockError):
    """
    Raised when an acquisition attempt fails for a reason other than contention.

    The underlying database or network error is available as ``__cause__``.

    Attributes:
        lock_name: Logical name of the lock
        lock_id: Numeric lock identifier derived from the name
        reason: Description of why the attempt failed
    """

    def __init__(self, lock_name: str, lock_id: int, reason: str) -> None:
        self.lock_name = lock_name
        self.lock_id = lock_id
        self.reason = reason
        super().__init__(f"Failed to acquire lock '{lock_name}' ({lock_id}): {reason}")


class LockStateError(AdvisoryLockError):
    """
    Raised when a lock instance is used outside its lifecycle.

    A lock instance attempts acquisition at most once; a fresh attempt
    needs a new instance (and therefore a new transaction).

    Attributes:
        lock_name: Logical name of the lock
        state: The state the instance was in
    """

    def __init__(self, lock_name: str, state: str) -> None:
        self.lock_name = lock_name
        self.state = state
        super().__init__(
            f"Lock '{lock_name}' has already attempted acquisition (state: {state})"
        )


class SessionPoolError(AdvisoryLockError):
    """Raised when a session is returned to a pool that did not hand it out."""

    pass


__all__ = [
    "AcquisitionError",
    "AdvisoryLockError",
    "ConfigurationError",
    "LockStateError",
    "SessionError",
    "SessionPoolError",
]
