"""
In-Memory Race Example

This example demonstrates the advisory lock protocol without a database:
- Hashing a lock name into a lock identifier
- Acquiring and releasing one lock explicitly
- Racing several contenders for the same lock
- Capturing lock-state events with a recording sink

Run with: python examples/in_memory_race.py
"""

import asyncio

from advisorylock import (
    AdvisoryLock,
    InMemoryLockStore,
    InMemorySessionPool,
    RecordingEventSink,
    hash_lock_key,
    race,
)


async def main():
    """Demonstrate the lock protocol against the in-memory store."""
    print("=" * 60)
    print("Advisory Lock In-Memory Example")
    print("=" * 60)

    store = InMemoryLockStore()
    pool = InMemorySessionPool(store, max_size=5)

    # Step 1: names map to identifiers deterministically
    name = "test-connections"
    print(f"\n1. Lock '{name}' has identifier {hash_lock_key(name)}")

    # Step 2: one explicit acquire/release
    session = await pool.acquire()
    try:
        lock = AdvisoryLock(session, name)
        acquired = await lock.acquire()
        print(f"\n2. Single contender acquired: {acquired}")
        released = await lock.release()
        print(f"   Released: {released}")
    finally:
        await pool.release(session)

    # Step 3: race five contenders
    sink = RecordingEventSink()
    summary = await race(pool, name, concurrency=5, event_sink=sink)
    print("\n3. Race results:")
    for attempt in summary.attempts:
        outcome = "ACQUIRED" if attempt.acquired else "FAILED"
        print(f"   Instance {attempt.index + 1}: {outcome}")
    print(f"   {summary.success_count} out of {summary.concurrency} acquired the lock")

    # Step 4: inspect the captured events
    print("\n4. Events:")
    for event in sink.events:
        print(f"   {event.holder_id}: {event.event_type.value}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
