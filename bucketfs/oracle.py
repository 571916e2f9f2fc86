import asyncio
import logging

from bucketfs.config import Settings
from bucketfs.errors import ObjectStoreError
from bucketfs.metadata import MetadataCache
from bucketfs.models import FileMetadata, ObjectHead, PosixStat
from bucketfs.objectstorage.store import ObjectStore
from bucketfs.paths import PathTranslator, is_root, normalize_uri


def metadata_from_head(uri: str, head: ObjectHead) -> FileMetadata:
    last_modified = head.get("last_modified")
    metadata = dict(uri=uri, filesize=head.get("size") or 0, version=head.get("version_id"))
    if last_modified is not None:
        metadata["timestamp"] = int(last_modified.timestamp())
    return FileMetadata.model_validate(metadata)


class StatOracle:
    """Answers "does this exist, and what is it" from the metadata cache, or from the bucket itself."""

    def __init__(self, settings: Settings, translator: PathTranslator, cache: MetadataCache, store: ObjectStore):
        self.ignore_cache = settings.ignore_cache
        self.translator = translator
        self.cache = cache
        self.store = store

    async def resolve(self, uri: str) -> FileMetadata | None:
        uri = normalize_uri(uri)
        if is_root(uri):
            return FileMetadata.directory(uri, timestamp=0)

        metadata = await self.cache.read(uri)
        if self.ignore_cache and (metadata is None or not metadata.is_directory):
            metadata = await self.fetch_live(uri, cached=metadata)
        return metadata

    async def fetch_live(self, uri: str, cached: FileMetadata | None = None) -> FileMetadata | None:
        """
        Ask the bucket about uri and bring the metadata cache in line with the answer.
        Returns None if the object does not exist or the bucket could not be reached.
        """
        key = self.translator.to_object_key(uri)
        try:
            head = await self.store.head_object(key)
        except ObjectStoreError as e:
            logging.warning(f"Could not get metadata for {uri} from the bucket: {e}")
            return None

        if head is None:
            if cached is not None:
                await self.cache.delete(uri)
            return None
        metadata = metadata_from_head(uri, head)
        if metadata != cached:
            try:
                await self.cache.write(metadata)
            except (IsADirectoryError, NotADirectoryError) as e:
                logging.warning(f"Object {key} does not fit in the directory tree, keeping the cached entry: {e}")
                return cached
        return metadata

    async def wait_until_exists(self, uri: str, max_attempts: int = 10, interval: float = 1.0) -> bool:
        """
        Poll the bucket until the object for uri shows up, at most max_attempts times, interval seconds apart.
        Newly written objects are not always visible right away.
        """
        key = self.translator.to_object_key(uri)
        for attempt in range(max_attempts):
            try:
                if await self.store.head_object(key) is not None:
                    return True
            except ObjectStoreError as e:
                logging.debug(f"Checking whether {key} exists failed (attempt {attempt + 1}): {e}")
            if attempt + 1 < max_attempts:
                await asyncio.sleep(interval)
        logging.warning(f"{key} did not appear in the bucket after {max_attempts} attempts")
        return False

    async def stat(self, uri: str) -> PosixStat | None:
        metadata = await self.resolve(uri)
        if metadata is None:
            return None
        return PosixStat.from_metadata(metadata)

    async def exists(self, uri: str) -> bool:
        return await self.resolve(uri) is not None

    async def is_dir(self, uri: str) -> bool:
        metadata = await self.resolve(uri)
        return metadata is not None and metadata.is_directory

    async def is_file(self, uri: str) -> bool:
        metadata = await self.resolve(uri)
        return metadata is not None and not metadata.is_directory
