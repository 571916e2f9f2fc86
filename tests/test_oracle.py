import stat

import pytest

from bucketfs.metadata import MetadataCache
from bucketfs.models import FileMetadata
from bucketfs.oracle import StatOracle
from bucketfs.paths import PathTranslator


@pytest.fixture()
def oracle(settings, cache, store):
    return StatOracle(settings, PathTranslator(settings), cache, store)


@pytest.fixture()
def live_oracle(make_settings, table, store):
    """An oracle that asks the bucket about everything that is not a cached directory"""
    settings = make_settings(ignore_cache=True)
    return StatOracle(settings, PathTranslator(settings), MetadataCache(table, settings), store)


@pytest.mark.anyio
async def test_root_always_exists(oracle, store):
    st = await oracle.stat("public://")
    assert stat.S_ISDIR(st.st_mode)
    assert st.st_mtime == 0
    assert await oracle.is_dir("private://")
    assert store.head_calls == 0


@pytest.mark.anyio
async def test_stat_from_cache(oracle, cache, store):
    await cache.write(FileMetadata(uri="public://a/b.txt", filesize=42, timestamp=1700000000))
    st = await oracle.stat("public://a/b.txt")
    assert stat.S_ISREG(st.st_mode)
    assert stat.S_IMODE(st.st_mode) == 0o777
    assert st.st_size == 42
    assert st.st_mtime == st.st_atime == st.st_ctime == 1700000000
    assert st.st_nlink == 1

    st = await oracle.stat("public://a")
    assert stat.S_ISDIR(st.st_mode)
    assert st.st_size == 0

    assert await oracle.stat("public://nope.txt") is None
    assert await oracle.is_file("public://a/b.txt")
    assert not await oracle.is_dir("public://a/b.txt")
    assert not await oracle.exists("public://nope.txt")
    # the cache is trusted, the bucket is never asked
    assert store.head_calls == 0


@pytest.mark.anyio
async def test_live_lookup_fills_cache(live_oracle, store):
    store.add("s3fs-public/new/file.txt", b"hello", version_id="v1")
    metadata = await live_oracle.resolve("public://new/file.txt")
    assert metadata.filesize == 5
    assert metadata.version == "v1"
    cached = await live_oracle.cache.read("public://new/file.txt")
    assert cached == metadata
    assert (await live_oracle.cache.read("public://new")).is_directory


@pytest.mark.anyio
async def test_live_lookup_removes_stale_entries(live_oracle):
    await live_oracle.cache.write(FileMetadata(uri="public://gone.txt", filesize=3, timestamp=1))
    assert await live_oracle.resolve("public://gone.txt") is None
    assert await live_oracle.cache.read("public://gone.txt") is None


@pytest.mark.anyio
async def test_live_lookup_trusts_cached_directories(live_oracle, store):
    await live_oracle.cache.write(FileMetadata.directory("public://dir"))
    assert await live_oracle.is_dir("public://dir")
    assert store.head_calls == 0


@pytest.mark.anyio
async def test_live_object_cannot_replace_directory(live_oracle, store):
    await live_oracle.cache.write(FileMetadata(uri="public://d/x.txt", filesize=3, timestamp=1))
    store.add("s3fs-public/d", b"stray")
    assert await live_oracle.fetch_live("public://d") is None
    assert (await live_oracle.cache.read("public://d")).is_directory
    assert await live_oracle.is_dir("public://d")


@pytest.mark.anyio
async def test_unreachable_bucket_is_not_found(live_oracle, store):
    await live_oracle.cache.write(FileMetadata(uri="public://kept.txt", filesize=3, timestamp=1))
    store.add("s3fs-public/kept.txt")
    store.unreachable = True
    assert await live_oracle.resolve("public://kept.txt") is None
    # an error is not proof of absence, so the entry stays
    assert await live_oracle.cache.read("public://kept.txt") is not None


@pytest.mark.anyio
async def test_wait_until_exists(oracle, store):
    store.add("s3fs-public/later.txt")
    store.invisible.add("s3fs-public/later.txt")
    assert not await oracle.wait_until_exists("public://later.txt", max_attempts=3, interval=0)
    assert store.head_calls == 3

    store.invisible.clear()
    assert await oracle.wait_until_exists("public://later.txt", max_attempts=3, interval=0)
    assert store.head_calls == 4


@pytest.mark.anyio
async def test_wait_until_exists_survives_errors(oracle, store):
    store.unreachable = True
    assert not await oracle.wait_until_exists("public://x.txt", max_attempts=2, interval=0)
    assert store.head_calls == 2
