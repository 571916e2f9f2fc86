"""
The durable side of the metadata cache: one row per file or directory uri.

Rows are keyed by normalized uri, so the only queries needed are by key and by uri prefix.
Database errors are not caught here; callers need to know when a write did not happen.
"""

import logging
from typing import AsyncIterator, Iterable

from sqlalchemy import BigInteger, Boolean, Integer, String, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bucketfs.models import FileMetadata

# Keep IN clauses well below the bind parameter limits of sqlite and friends
DELETE_BATCH_SIZE = 500


class Base(DeclarativeBase):
    pass


class FileRecord(Base):
    __tablename__ = "bucketfs_file"

    uri: Mapped[str] = mapped_column(String(1024), primary_key=True)
    filesize: Mapped[int] = mapped_column(BigInteger, default=0)
    timestamp: Mapped[int] = mapped_column(Integer, default=0)
    is_directory: Mapped[bool] = mapped_column(Boolean, default=False)
    version: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self):
        return f"<FileRecord {self.uri} ({'dir' if self.is_directory else self.filesize})>"


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _starts_with(prefix: str):
    # substr is exact (LIKE is case insensitive on sqlite)
    return func.substr(FileRecord.uri, 1, len(prefix)) == prefix


def create_engine(database_url: str) -> AsyncEngine:
    logging.debug(f"Connecting to metadata database at {database_url}")
    return create_async_engine(database_url)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class MetadataTable:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session = async_sessionmaker(engine, expire_on_commit=False)

    async def get(self, uri: str) -> FileMetadata | None:
        async with self.session() as session:
            record = await session.get(FileRecord, uri)
            if record is None:
                return None
            return FileMetadata.model_validate(record)

    async def upsert(self, metadata: FileMetadata) -> None:
        values = metadata.model_dump()
        async with self.session.begin() as session:
            dialect = self.engine.dialect.name
            if dialect in ("sqlite", "postgresql"):
                insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
                stmt = insert(FileRecord).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[FileRecord.uri],
                    set_={k: v for k, v in values.items() if k != "uri"},
                )
                await session.execute(stmt)
            else:
                await session.merge(FileRecord(**values))

    async def delete(self, uris: list[str]) -> int:
        """Delete all given uris in a single transaction, returning the number of deleted rows"""
        deleted = 0
        async with self.session.begin() as session:
            for i in range(0, len(uris), DELETE_BATCH_SIZE):
                batch = uris[i : i + DELETE_BATCH_SIZE]
                result = await session.execute(delete(FileRecord).where(FileRecord.uri.in_(batch)))
                deleted += result.rowcount or 0
        return deleted

    async def has_descendants(self, prefix: str) -> bool:
        async with self.session() as session:
            stmt = select(FileRecord.uri).where(_starts_with(prefix)).limit(1)
            return (await session.scalar(stmt)) is not None

    async def children(self, prefix: str) -> AsyncIterator[str]:
        """Uris directly below the prefix (grandchildren contain another separator and are skipped)"""
        stmt = (
            select(FileRecord.uri)
            .where(_starts_with(prefix))
            .where(FileRecord.uri != prefix)
            .where(~FileRecord.uri.like(_like_escape(prefix) + "%/%", escape="\\"))
        )
        async with self.session() as session:
            uris = list(await session.scalars(stmt))
        for uri in uris:
            yield uri

    async def replace_all(self, entries: Iterable[FileMetadata]) -> int:
        rows = [entry.model_dump() for entry in entries]
        async with self.session.begin() as session:
            await session.execute(delete(FileRecord))
            if rows:
                await session.execute(FileRecord.__table__.insert(), rows)
        return len(rows)

    async def count(self) -> int:
        async with self.session() as session:
            return await session.scalar(select(func.count()).select_from(FileRecord)) or 0
