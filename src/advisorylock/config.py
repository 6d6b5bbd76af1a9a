"""
Configuration for the advisory lock demo.

Settings come from the process environment, optionally seeded from a
``.env`` file. Values already present in the environment win over the
file.

Environment variables:
    DATABASE_URL: PostgreSQL connection string (required)
    ADVISORYLOCK_POOL_SIZE: Engine pool size (default 10)
    ADVISORYLOCK_CONNECT_TIMEOUT: Connect/checkout timeout in seconds (default 5)
    ADVISORYLOCK_LOCK_TIMEOUT: Acquisition deadline in seconds (default 30)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from advisorylock.exceptions import ConfigurationError

DATABASE_URL_VAR = "DATABASE_URL"
POOL_SIZE_VAR = "ADVISORYLOCK_POOL_SIZE"
CONNECT_TIMEOUT_VAR = "ADVISORYLOCK_CONNECT_TIMEOUT"
LOCK_TIMEOUT_VAR = "ADVISORYLOCK_LOCK_TIMEOUT"

_ASYNC_DRIVER = "postgresql+asyncpg"
_SYNC_SCHEMES = ("postgres", "postgresql", "postgresql+psycopg2", "postgresql+psycopg")


@dataclass(frozen=True)
class LockConfig:
    """
    Connection and race settings.

    Attributes:
        database_url: PostgreSQL connection string
        pool_size: Number of pooled connections
        connect_timeout: Seconds to wait for a connection
        lock_timeout: Acquisition deadline in seconds per attempt
        lock_name: Logical lock name raced for by the demo
        concurrency: Number of contenders in the demo race

    Example:
        >>> config = LockConfig(database_url="postgresql://app:secret@db/app")
        >>> config.redacted_url
        'postgresql://app:***@db/app'
    """

    database_url: str
    pool_size: int = 10
    connect_timeout: float = 5.0
    lock_timeout: float = 30.0
    lock_name: str = "test-connections"
    concurrency: int = 3

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.database_url:
            raise ConfigurationError(
                DATABASE_URL_VAR,
                "a PostgreSQL connection string is required; "
                "set it in the environment or a .env file",
            )
        try:
            make_url(self.database_url)
        except ArgumentError as e:
            raise ConfigurationError(DATABASE_URL_VAR, f"cannot parse URL: {e}") from e

        if self.pool_size < 1:
            raise ConfigurationError(POOL_SIZE_VAR, f"must be positive, got {self.pool_size}")
        if self.connect_timeout <= 0:
            raise ConfigurationError(
                CONNECT_TIMEOUT_VAR, f"must be positive, got {self.connect_timeout}"
            )
        if self.lock_timeout <= 0:
            raise ConfigurationError(LOCK_TIMEOUT_VAR, f"must be positive, got {self.lock_timeout}")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency", f"must be positive, got {self.concurrency}")
        if self.concurrency > self.pool_size:
            raise ConfigurationError(
                "concurrency",
                f"{self.concurrency} contenders need at least as many pooled "
                f"connections, pool size is {self.pool_size}",
            )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
        **overrides: object,
    ) -> LockConfig:
        """
        Build a config from environment variables.

        Args:
            environ: Variables to read (defaults to ``os.environ``)
            env_file: ``.env`` file to read first; ``.env`` in the working
                directory is used when omitted and present
            **overrides: Field values that take precedence over the environment

        Raises:
            ConfigurationError: If DATABASE_URL is missing, a value is invalid,
                or an explicit ``env_file`` does not exist
        """
        if env_file is not None and not Path(env_file).is_file():
            raise ConfigurationError(str(env_file), "file not found")
        values: dict[str, str | None] = dict(dotenv_values(env_file or ".env"))
        values.update(os.environ if environ is None else environ)

        fields: dict[str, object] = {
            "database_url": values.get(DATABASE_URL_VAR) or "",
        }
        if values.get(POOL_SIZE_VAR):
            fields["pool_size"] = _parse(POOL_SIZE_VAR, values[POOL_SIZE_VAR], int)
        if values.get(CONNECT_TIMEOUT_VAR):
            fields["connect_timeout"] = _parse(CONNECT_TIMEOUT_VAR, values[CONNECT_TIMEOUT_VAR], float)
        if values.get(LOCK_TIMEOUT_VAR):
            fields["lock_timeout"] = _parse(LOCK_TIMEOUT_VAR, values[LOCK_TIMEOUT_VAR], float)
        fields.update({key: value for key, value in overrides.items() if value is not None})

        return cls(**fields)  # type: ignore[arg-type]

    @property
    def async_database_url(self) -> str:
        """The connection string with the asyncpg driver selected."""
        url = make_url(self.database_url)
        if url.drivername in _SYNC_SCHEMES:
            url = url.set(drivername=_ASYNC_DRIVER)
        return url.render_as_string(hide_password=False)

    @property
    def redacted_url(self) -> str:
        """The connection string with its password masked, safe for logs."""
        return make_url(self.database_url).render_as_string(hide_password=True)


def _parse(setting: str, raw: str | None, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(setting, f"expected {kind.__name__}, got {raw!r}") from e


__all__ = [
    "CONNECT_TIMEOUT_VAR",
    "DATABASE_URL_VAR",
    "LOCK_TIMEOUT_VAR",
    "POOL_SIZE_VAR",
    "LockConfig",
]
