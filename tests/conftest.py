"""
Shared pytest fixtures for the advisorylock tests.

This module provides:
- In-memory store, session, and pool fixtures
- Event sink and tracer fixtures for asserting on emitted events and spans
- Lock name fixtures, including a deliberately colliding pair
"""

from __future__ import annotations

import pytest

from advisorylock.locks import (
    InMemoryLockSession,
    InMemoryLockStore,
    InMemorySessionPool,
    hash_lock_key,
)
from advisorylock.observability import MockTracer, RecordingEventSink

# "Aa" and "BB" both hash to 2112
COLLIDING_NAMES = ("Aa", "BB")


# =============================================================================
# In-Memory Store Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryLockStore:
    """Provide an empty in-memory lock store."""
    return InMemoryLockStore()


@pytest.fixture
def session(store: InMemoryLockStore) -> InMemoryLockSession:
    """Provide a session against the store fixture."""
    return store.session()


@pytest.fixture
def other_session(store: InMemoryLockStore) -> InMemoryLockSession:
    """Provide a second, independent session against the same store."""
    return store.session()


@pytest.fixture
def pool(store: InMemoryLockStore) -> InMemorySessionPool:
    """Provide a pool of up to ten sessions against the store fixture."""
    return InMemorySessionPool(store, max_size=10)


# =============================================================================
# Observability Fixtures
# =============================================================================


@pytest.fixture
def sink() -> RecordingEventSink:
    """Provide an event sink that records every lock-state event."""
    return RecordingEventSink()


@pytest.fixture
def tracer() -> MockTracer:
    """Provide a tracer that records span names and attributes."""
    return MockTracer()


# =============================================================================
# Lock Name Fixtures
# =============================================================================


@pytest.fixture
def lock_name() -> str:
    return "test-connections"


@pytest.fixture
def colliding_names() -> tuple[str, str]:
    """Provide two different names that hash to the same lock identifier."""
    first, second = COLLIDING_NAMES
    assert first != second
    assert hash_lock_key(first) == hash_lock_key(second)
    return COLLIDING_NAMES
