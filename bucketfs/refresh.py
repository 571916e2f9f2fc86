"""
Rebuild the metadata cache from what is actually in the bucket.

Needed when files were added to the bucket behind our back, or when starting with an empty cache.
"""

import logging

from bucketfs.metadata import MetadataCache
from bucketfs.models import FileMetadata
from bucketfs.objectstorage.store import ObjectStore
from bucketfs.oracle import metadata_from_head
from bucketfs.paths import PathTranslator, dirname, is_root


async def refresh_cache(store: ObjectStore, translator: PathTranslator, cache: MetadataCache) -> dict:
    """
    List every object below the root folder, add all ancestor directories, and replace the metadata table
    with the result in one go. Returns the number of files and directories now in the cache.
    """
    files: dict[str, FileMetadata] = {}
    directories: set[str] = set()

    async for obj in store.list_objects(translator.root_prefix()):
        uri = translator.to_uri(obj["key"])
        if uri is None or is_root(uri):
            continue
        if obj["is_dir"]:
            directories.add(uri)
        else:
            files[uri] = metadata_from_head(uri, obj)

    for uri in list(files) + list(directories):
        parent = dirname(uri)
        while not is_root(parent) and parent not in directories:
            directories.add(parent)
            parent = dirname(parent)

    conflicts = directories & files.keys()
    for uri in conflicts:
        logging.warning(f"{uri} is both a file and a directory in the bucket; keeping the directory")
        del files[uri]

    entries = list(files.values()) + [FileMetadata.directory(uri) for uri in sorted(directories)]
    await cache.replace_all(entries)
    logging.info(f"Refreshed metadata cache: {len(files)} files, {len(directories)} directories")
    return dict(files=len(files), directories=len(directories))
