import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from types_aiobotocore_s3.client import S3Client

from bucketfs.config import Settings
from bucketfs.db import MetadataTable, create_engine, create_tables
from bucketfs.filesystem import BucketFileSystem
from bucketfs.metadata import MetadataCache
from bucketfs.objectstorage.s3bucket import S3ObjectStore


@asynccontextmanager
async def s3_client(settings: Settings) -> AsyncGenerator[S3Client, None]:
    """
    Open an S3 client for the configured host.
    Without explicit keys, botocore falls back to its usual credential chain (environment, profile, instance role).
    """
    logging.debug(f"Connecting to S3 at {settings.s3_host or 'AWS'}, bucket {settings.bucket}")
    session = get_session()
    client = session.create_client(
        service_name="s3",
        region_name=settings.region,
        endpoint_url=settings.s3_host,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=AioConfig(signature_version="s3v4"),
    )
    async with client as s3:
        yield s3


@asynccontextmanager
async def bucketfs_connections(settings: Settings) -> AsyncGenerator[BucketFileSystem, None]:
    """
    The main context manager to open and close the connections bucketfs needs.
    Use it once:
        - For running the server: in the FastAPI lifespan
        - For CLI commands: within the CLI command
    """
    engine = create_engine(settings.database_url)
    try:
        await create_tables(engine)
        async with s3_client(settings) as client:
            store = S3ObjectStore(client, settings.bucket)
            cache = MetadataCache(MetadataTable(engine), settings)
            yield BucketFileSystem(settings, store, cache)
    finally:
        await engine.dispose()
