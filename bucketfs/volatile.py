"""
Short-lived in-process tier in front of the metadata table.

Lookups go through an alru_cache around the table, so repeated reads of a uri (including reads that
found nothing) are answered from memory until the ttl runs out. Every write to the table invalidates
its entry right away; expiry only limits how long another process's writes can go unnoticed.
"""

from typing import Awaitable, Callable

from async_lru import alru_cache

from bucketfs.models import FileMetadata

Loader = Callable[[str], Awaitable[FileMetadata | None]]


class VolatileCache:
    def __init__(self, loader: Loader, ttl: float, maxsize: int = 10000, prefix: str = "bucketfs:uri:"):
        self.prefix = prefix

        async def load(cache_id: str) -> FileMetadata | None:
            return await loader(cache_id[len(prefix) :])

        self._lookup = alru_cache(maxsize=maxsize, ttl=ttl)(load)

    def cache_id(self, uri: str) -> str:
        return f"{self.prefix}{uri}"

    async def get(self, uri: str) -> FileMetadata | None:
        return await self._lookup(self.cache_id(uri))

    def invalidate(self, uri: str) -> None:
        self._lookup.cache_invalidate(self.cache_id(uri))

    def clear(self) -> None:
        self._lookup.cache_clear()

    def __len__(self) -> int:
        return self._lookup.cache_info().currsize
