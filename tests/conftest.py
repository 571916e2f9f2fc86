from datetime import UTC, datetime
from urllib.parse import quote, urlencode

import pytest

from bucketfs.config import Settings
from bucketfs.db import MetadataTable, create_engine, create_tables
from bucketfs.errors import ObjectStoreError
from bucketfs.filesystem import BucketFileSystem
from bucketfs.metadata import MetadataCache
from bucketfs.models import ObjectHead

TEST_BUCKET = "test-bucket"
S3_ENDPOINT = "https://s3.test"


class MemoryObjectStore:
    """Stands in for a bucket. Keys in `invisible` exist but are not (yet) visible, like after a slow write."""

    def __init__(self, bucket: str = TEST_BUCKET):
        self.bucket = bucket
        self.objects: dict[str, dict] = {}
        self.invisible: set[str] = set()
        self.unreachable = False
        self.head_calls = 0
        self.url_calls = 0

    def add(self, key: str, data: bytes = b"data", version_id: str | None = None, **params):
        self.objects[key] = dict(
            data=data, last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC), version_id=version_id, **params
        )

    def _head(self, key: str) -> ObjectHead:
        obj = self.objects[key]
        return ObjectHead(
            key=key,
            is_dir=key.endswith("/"),
            size=len(obj["data"]),
            last_modified=obj["last_modified"],
            version_id=obj["version_id"],
        )

    async def head_object(self, key: str) -> ObjectHead | None:
        self.head_calls += 1
        if self.unreachable:
            raise ObjectStoreError("bucket unreachable", key=key)
        if key not in self.objects or key in self.invisible:
            return None
        return self._head(key)

    async def object_url(self, key: str) -> str:
        self.url_calls += 1
        return f"{S3_ENDPOINT}/{self.bucket}/{quote(key)}"

    async def presigned_get(self, key: str, expires_in: int, **response_args: str) -> str:
        self.url_calls += 1
        args = {"X-Amz-Expires": str(expires_in), **response_args, "X-Amz-Signature": "signature"}
        return f"{S3_ENDPOINT}/{self.bucket}/{quote(key)}?{urlencode(args)}"

    async def get_object(self, key: str) -> bytes | None:
        obj = self.objects.get(key)
        return None if obj is None else obj["data"]

    async def put_object(self, key, data, content_type=None, acl=None, cache_control=None, encryption=None):
        self.add(key, data, content_type=content_type, acl=acl, cache_control=cache_control, encryption=encryption)

    async def copy_object(self, source_key, key, acl=None, encryption=None):
        self.objects[key] = {**self.objects[source_key], "acl": acl, "encryption": encryption}

    async def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)

    async def list_objects(self, prefix: str = ""):
        for key in sorted(self.objects):
            if key.startswith(prefix):
                yield self._head(key)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def make_settings(tmp_path):
    def make(**kwargs) -> Settings:
        kwargs.setdefault("bucket", TEST_BUCKET)
        kwargs.setdefault("database_url", f"sqlite+aiosqlite:///{tmp_path / 'bucketfs.db'}")
        kwargs.setdefault("wait_interval", 0)
        return Settings(**kwargs)

    return make


@pytest.fixture()
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture()
async def table(settings, anyio_backend):
    engine = create_engine(settings.database_url)
    await create_tables(engine)
    yield MetadataTable(engine)
    await engine.dispose()


@pytest.fixture()
def cache(table, settings) -> MetadataCache:
    return MetadataCache(table, settings)


@pytest.fixture()
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture()
def fs(settings, store, cache) -> BucketFileSystem:
    return BucketFileSystem(settings, store, cache)
