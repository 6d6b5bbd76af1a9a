"""
Shared pytest fixtures for integration tests.

Provides a PostgreSQL server through testcontainers. If testcontainers or
Docker is not available, tests are automatically skipped.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from advisorylock.locks import PostgreSQLSessionPool


# ============================================================================
# Testcontainers Detection
# ============================================================================

TESTCONTAINERS_AVAILABLE = False

try:
    from testcontainers.postgres import PostgresContainer

    TESTCONTAINERS_AVAILABLE = True
except ImportError:
    PostgresContainer = None  # type: ignore[assignment, misc]


def is_docker_available() -> bool:
    """Check if Docker is available for running containers."""
    import subprocess

    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


DOCKER_AVAILABLE = is_docker_available()


# ============================================================================
# PostgreSQL Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Provide a PostgreSQL container shared by the whole test session.
    """
    if not TESTCONTAINERS_AVAILABLE or not DOCKER_AVAILABLE:
        pytest.skip("PostgreSQL testcontainer not available")

    container = PostgresContainer("postgres:16")
    container.start()

    yield container

    container.stop()


@pytest.fixture(scope="session")
def postgres_url(postgres_container: Any) -> str:
    """Connection URL for the container, in plain ``postgresql://`` form."""
    url = postgres_container.get_connection_url()
    return url.replace("postgresql+psycopg2://", "postgresql://")


@pytest.fixture
async def postgres_engine(postgres_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an asyncpg engine with room for ten concurrent sessions."""
    from advisorylock.config import LockConfig
    from advisorylock.locks import create_lock_engine

    engine = create_lock_engine(LockConfig(database_url=postgres_url, pool_size=10))

    yield engine

    await engine.dispose()


@pytest.fixture
async def postgres_pool(
    postgres_engine: AsyncEngine,
) -> AsyncGenerator[PostgreSQLSessionPool, None]:
    """Provide a session pool and check that every session came back."""
    from advisorylock.locks import PostgreSQLSessionPool

    pool = PostgreSQLSessionPool(postgres_engine, capacity=10)

    yield pool

    assert pool.checked_out == 0, "test leaked sessions"


@pytest.fixture
async def advisory_lock_count(postgres_engine: AsyncEngine) -> Any:
    """Provide a coroutine counting advisory locks held server-wide."""
    from sqlalchemy import text

    async def count() -> int:
        async with postgres_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT count(*) FROM pg_locks WHERE locktype = 'advisory'")
            )
            return int(result.scalar_one())

    return count
