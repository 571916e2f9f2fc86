"""
Filesystem operations on top of a bucket, in the style of a stream wrapper.

Like file functions, these return None or False for missing files and refused operations.
Errors from the bucket (ObjectStoreError) and from the metadata database are raised.
"""

import logging
import mimetypes
from typing import Sequence

from bucketfs.config import Settings
from bucketfs.directories import DirectoryListing, DirectorySynthesizer
from bucketfs.metadata import MetadataCache
from bucketfs.models import FileMetadata, PosixStat
from bucketfs.objectstorage.store import ObjectStore
from bucketfs.oracle import StatOracle, metadata_from_head
from bucketfs.paths import PathTranslator, dirname, is_root, normalize_uri, split_uri
from bucketfs.urls import UrlHook, UrlPolicy


class BucketFileSystem:
    def __init__(
        self,
        settings: Settings,
        store: ObjectStore,
        cache: MetadataCache,
        hooks: Sequence[UrlHook] = (),
    ):
        self.settings = settings
        self.store = store
        self.cache = cache
        self.paths = PathTranslator(settings)
        self.oracle = StatOracle(settings, self.paths, cache, store)
        self.directories = DirectorySynthesizer(cache)
        self.urls = UrlPolicy(settings, self.paths, self.oracle, store, hooks)

    def _acl(self, uri: str) -> str:
        return "private" if split_uri(uri)[0] == "private" else "public-read"

    async def _wait_until_exists(self, uri: str) -> bool:
        return await self.oracle.wait_until_exists(
            uri, max_attempts=self.settings.wait_attempts, interval=self.settings.wait_interval
        )

    async def url_stat(self, uri: str) -> PosixStat | None:
        return await self.oracle.stat(uri)

    async def exists(self, uri: str) -> bool:
        return await self.oracle.exists(uri)

    async def is_dir(self, uri: str) -> bool:
        return await self.oracle.is_dir(uri)

    async def is_file(self, uri: str) -> bool:
        return await self.oracle.is_file(uri)

    async def mkdir(self, uri: str, recursive: bool = False) -> bool:
        return await self.directories.mkdir(uri, recursive=recursive)

    async def rmdir(self, uri: str) -> bool:
        return await self.directories.rmdir(uri)

    async def opendir(self, uri: str) -> DirectoryListing | None:
        if not await self.oracle.is_dir(uri):
            return None
        return self.directories.list_children(uri)

    async def _can_hold(self, uri: str) -> bool:
        """Whether a file can be stored at uri: it is not a directory, and its nearest cached ancestor is not a file"""
        if await self.oracle.is_dir(uri):
            logging.info(f"Cannot store a file at {uri}: it is a directory")
            return False
        parent = dirname(uri)
        while not is_root(parent):
            metadata = await self.cache.read(parent)
            if metadata is not None:
                if not metadata.is_directory:
                    logging.info(f"Cannot store a file at {uri}: {parent} is a file")
                return metadata.is_directory
            parent = dirname(parent)
        return True

    async def write_file(self, uri: str, data: bytes, content_type: str | None = None) -> FileMetadata | None:
        """
        Upload data to uri and record it in the metadata cache.
        Returns None if uri is a directory or below a file,
        or if the upload did not become visible in the bucket in time.
        """
        uri = normalize_uri(uri)
        if not await self._can_hold(uri):
            return None
        if content_type is None:
            content_type = mimetypes.guess_type(uri)[0] or "application/octet-stream"

        key = self.paths.to_object_key(uri)
        await self.store.put_object(
            key,
            data,
            content_type=content_type,
            acl=self._acl(uri),
            cache_control=self.settings.cache_control_header,
            encryption=self.settings.encryption,
        )
        return await self._cache_uploaded(uri)

    async def _cache_uploaded(self, uri: str) -> FileMetadata | None:
        if not await self._wait_until_exists(uri):
            logging.warning(f"Uploaded {uri}, but it did not show up in the bucket")
            return None
        head = await self.store.head_object(self.paths.to_object_key(uri))
        if head is None:
            return None
        metadata = metadata_from_head(uri, head)
        try:
            await self.cache.write(metadata)
        except (IsADirectoryError, NotADirectoryError) as e:
            logging.warning(f"Removing uploaded {uri}, the directory tree changed meanwhile: {e}")
            await self.store.delete_object(self.paths.to_object_key(uri))
            return None
        return metadata

    async def read_file(self, uri: str) -> bytes | None:
        if not await self.oracle.is_file(uri):
            return None
        return await self.store.get_object(self.paths.to_object_key(uri))

    async def unlink(self, uri: str) -> bool:
        metadata = await self.oracle.resolve(uri)
        if metadata is None or metadata.is_directory:
            return False
        await self.store.delete_object(self.paths.to_object_key(uri))
        await self.cache.delete(uri)
        return True

    async def rename(self, source: str, target: str) -> bool:
        """
        Move a file. Directories cannot be renamed, existing directories cannot be overwritten,
        and the target cannot be below a file.
        """
        source, target = normalize_uri(source), normalize_uri(target)
        metadata = await self.oracle.resolve(source)
        if metadata is None or metadata.is_directory:
            return False
        if source == target:
            return True
        if not await self._can_hold(target):
            return False

        target_key = self.paths.to_object_key(target)
        await self.store.copy_object(
            self.paths.to_object_key(source),
            target_key,
            acl=self._acl(target),
            encryption=self.settings.encryption,
        )
        if not await self._wait_until_exists(target):
            logging.warning(f"Copied {source} to {target}, but the copy did not show up; keeping the original")
            return False
        try:
            await self.cache.rename(source, target)
        except (IsADirectoryError, NotADirectoryError) as e:
            logging.warning(f"Cannot move {source} to {target}, the directory tree changed meanwhile: {e}")
            await self.store.delete_object(target_key)
            return False
        await self.store.delete_object(self.paths.to_object_key(source))
        return True

    async def external_url(self, uri: str, custom_args: dict[str, str] | None = None) -> str:
        return await self.urls.external_url(uri, custom_args)
