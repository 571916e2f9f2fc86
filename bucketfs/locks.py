import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """
    One asyncio.Lock per key, created on first use and dropped once nobody holds or waits for it.
    Unrelated keys never wait on each other.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str, timeout: float) -> AsyncIterator[bool]:
        """
        Hold the lock for key, waiting at most timeout seconds for it.
        Yields True if the lock was acquired, False if the wait timed out (the body still runs).
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                # a timeout that races a successful acquire gives the lock up again
                async with asyncio.timeout(timeout):
                    await lock.acquire()
                acquired = True
            except TimeoutError:
                acquired = False
            try:
                yield acquired
            finally:
                if acquired:
                    lock.release()
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
