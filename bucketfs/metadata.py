"""
Metadata cache: the durable table plus a short-lived in-memory tier.

Only one reader per uri goes to the database at a time; concurrent readers of the same uri wait
(for a bounded time) and then find the value in memory. Writes and deletes go to the table first
and then invalidate memory. Every write also makes sure all ancestor directories of the written
uri exist, and a uri is never both a file and a directory.
"""

import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from bucketfs.config import Settings
from bucketfs.db import MetadataTable
from bucketfs.locks import KeyedLock
from bucketfs.models import FileMetadata
from bucketfs.paths import dirname, is_root, normalize_uri
from bucketfs.volatile import VolatileCache


class MetadataCache:
    def __init__(self, table: MetadataTable, settings: Settings, tier: VolatileCache | None = None):
        self.table = table
        self.lock_timeout = settings.lock_timeout
        if tier is None:
            tier = VolatileCache(
                table.get, ttl=settings.cache_ttl, maxsize=settings.cache_maxsize, prefix=settings.cache_prefix
            )
        self.tier = tier
        self.locks = KeyedLock()

    async def _tier_get(self, uri: str) -> FileMetadata | None:
        try:
            return await self.tier.get(uri)
        except SQLAlchemyError:
            raise
        except Exception as e:
            logging.warning(f"Metadata cache lookup for {uri} failed, treating as a miss: {e}")
            return await self.table.get(uri)

    def _tier_invalidate(self, uri: str) -> None:
        try:
            self.tier.invalidate(uri)
        except Exception as e:
            logging.warning(f"Could not invalidate cached metadata for {uri}: {e}")

    async def read(self, uri: str) -> FileMetadata | None:
        uri = normalize_uri(uri)
        async with self.locks.hold(uri, self.lock_timeout) as acquired:
            if not acquired:
                # Not filling memory here: the lock holder may be about to change this entry
                logging.warning(f"Waited {self.lock_timeout}s for another reader of {uri}, reading it directly")
                return await self.table.get(uri)
            return await self._tier_get(uri)

    async def write(self, metadata: FileMetadata) -> None:
        """
        Store metadata and create its missing ancestor directories.
        Raises IsADirectoryError when a file would replace a directory,
        and NotADirectoryError (after undoing the write) when an ancestor is a file.
        """
        uri = metadata.uri
        async with self.locks.hold(uri, self.lock_timeout) as acquired:
            if not acquired:
                logging.warning(f"Waited {self.lock_timeout}s for a reader of {uri}, writing anyway")
            if not metadata.is_directory:
                existing = await self.table.get(uri)
                if existing is not None and existing.is_directory:
                    raise IsADirectoryError(f"{uri} is a directory, it cannot be replaced by a file")
            await self.table.upsert(metadata)
            self._tier_invalidate(uri)

        if not is_root(uri):
            try:
                await self._ensure_directory(dirname(uri))
            except NotADirectoryError:
                await self.delete(uri)
                raise

    async def _ensure_directory(self, uri: str) -> None:
        if is_root(uri):
            return
        existing = await self.read(uri)
        if existing is None:
            await self.write(FileMetadata.directory(uri))
        elif not existing.is_directory:
            raise NotADirectoryError(f"{uri} is a file, it cannot contain other files")

    async def delete(self, uris: str | Iterable[str]) -> int:
        if isinstance(uris, str):
            uris = [uris]
        uris = list(dict.fromkeys(normalize_uri(uri) for uri in uris))
        deleted = await self.table.delete(uris)
        for uri in uris:
            self._tier_invalidate(uri)
        return deleted

    async def rename(self, source: str, target: str) -> bool:
        """
        Move the entry of source to target, keeping its metadata. Returns False if source is not cached.
        The target is written first, so if that fails the source entry is still there.
        """
        source, target = normalize_uri(source), normalize_uri(target)
        metadata = await self.read(source)
        if metadata is None:
            return False
        if source == target:
            return True
        await self.write(metadata.model_copy(update=dict(uri=target)))
        await self.delete(source)
        return True

    async def replace_all(self, entries: Iterable[FileMetadata]) -> int:
        n = await self.table.replace_all(entries)
        self.tier.clear()
        return n
