"""
Per-key mutual exclusion for trip and driver records.

Each trip id (or driver email) gets its own asyncio.Lock so that
mutations on one record are serialized while unrelated records
proceed in parallel.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Hashable, AsyncIterator


class KeyedLock:
    """
    Registry of asyncio locks addressed by key.

    Locks are created on first use and dropped once no task holds or
    waits for them, so the registry only grows with live contention.

    Usage:
        trip_locks = KeyedLock()

        async with trip_locks.hold(trip_id):
            ...
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
