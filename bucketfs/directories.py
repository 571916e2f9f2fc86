"""
Directories do not exist in a bucket, so they only live in the metadata cache.
"""

import logging
from typing import AsyncIterator

from bucketfs.metadata import MetadataCache
from bucketfs.models import FileMetadata
from bucketfs.paths import directory_prefix, dirname, is_root, normalize_uri


class DirectoryListing:
    """
    The names of the direct children of a directory.
    Every iteration queries the table again, so a listing can be walked more than once.
    """

    def __init__(self, cache: MetadataCache, uri: str):
        self.cache = cache
        self.uri = normalize_uri(uri)
        self.prefix = directory_prefix(self.uri)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._names()

    async def _names(self) -> AsyncIterator[str]:
        async for uri in self.cache.table.children(self.prefix):
            yield uri[len(self.prefix) :]

    async def to_list(self) -> list[str]:
        return [name async for name in self]


class DirectorySynthesizer:
    def __init__(self, cache: MetadataCache):
        self.cache = cache

    async def mkdir(self, uri: str, recursive: bool = False) -> bool:
        """
        Create a directory entry. Creating an existing directory succeeds,
        creating a directory where a file already is fails.
        """
        uri = normalize_uri(uri)
        if is_root(uri):
            return True
        existing = await self.cache.read(uri)
        if existing is not None:
            return existing.is_directory

        try:
            await self.cache.write(FileMetadata.directory(uri))
        except NotADirectoryError as e:
            logging.info(f"Cannot create directory {uri}: {e}")
            return False

        parent = dirname(uri)
        if recursive and not is_root(parent):
            return await self.mkdir(parent, recursive=True)
        return True

    async def is_empty(self, uri: str) -> bool:
        return not await self.cache.table.has_descendants(directory_prefix(uri))

    async def rmdir(self, uri: str) -> bool:
        """Remove an empty directory. Fails for files, missing entries, the root and non-empty directories."""
        uri = normalize_uri(uri)
        if is_root(uri):
            return False
        existing = await self.cache.read(uri)
        if existing is None or not existing.is_directory:
            return False
        if not await self.is_empty(uri):
            logging.debug(f"Not removing {uri}: directory is not empty")
            return False
        await self.cache.delete(uri)
        return True

    def list_children(self, uri: str) -> DirectoryListing:
        return DirectoryListing(self.cache, uri)
