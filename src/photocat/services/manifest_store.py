"""Manifest store persisting FileRecords to SQLite.

Uses SQLAlchemy's native async support with aiosqlite. All writes go
through one asyncio lock so concurrent indexing workers never race on the
same path; reads stream rows with a server-side cursor.
"""

import asyncio
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from datetime import timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import DatabaseError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, col

from photocat.errors import StorageError
from photocat.models.file_record import FileRecord
from photocat.models.query import QueryFilters
from photocat.models.tables import FileRecordRow
from photocat.services.retry import DEFAULT_ATTEMPTS, retry_storage


@contextmanager
def _storage_errors(action: str, retryable: tuple[type[Exception], ...] = ()) -> Iterator[None]:
    """Turn database failures, such as a file that is not SQLite, into StorageError."""
    try:
        yield
    except retryable:
        raise
    except DatabaseError as e:
        raise StorageError(f"manifest {action} failed: {e.orig or e}") from e


class ManifestStore:
    """Persists FileRecords keyed by (filename, content_id) via SQLModel.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        retry_attempts: int = DEFAULT_ATTEMPTS,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._retry_attempts = retry_attempts
        self._write_lock = asyncio.Lock()
        self._logger = logger or structlog.get_logger(__name__)

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        with _storage_errors("schema setup"):
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        self._logger.info("manifest_store_initialized")

    async def upsert(self, record: FileRecord) -> bool:
        """Insert or refresh a FileRecord.

        Returns:
            True if a row was inserted or changed, False if an identical row
            was already stored.

        Raises:
            StorageError: If the write keeps failing.
        """
        async with self._write_lock:
            changed = await retry_storage(
                lambda: self._upsert_once(record),
                description=f"manifest upsert {record.filename}",
                logger=self._logger,
                attempts=self._retry_attempts,
            )
        self._logger.debug(
            "manifest_upserted",
            filename=record.filename,
            content_id=record.content_id,
            changed=changed,
        )
        return changed

    async def _upsert_once(self, record: FileRecord) -> bool:
        with _storage_errors("upsert", retryable=(OperationalError,)):
            async with AsyncSession(self._engine) as session:
                existing = await session.get(
                    FileRecordRow,
                    {"filename": record.filename, "content_id": record.content_id},
                )
                if existing is not None:
                    if self._row_to_record(existing) == record:
                        return False
                    existing.schema_version = record.schema_version
                    existing.url = record.url
                    existing.created_at = record.created_at
                    existing.modified_at = record.modified_at
                else:
                    session.add(self._record_to_row(record))
                await session.commit()
        return True

    async def get(self, filename: str, content_id: str) -> FileRecord | None:
        """Retrieve a FileRecord by its (filename, content_id) key."""
        with _storage_errors("read"):
            async with AsyncSession(self._engine) as session:
                row = await session.get(FileRecordRow, {"filename": filename, "content_id": content_id})
                if row is None:
                    return None
                return self._row_to_record(row)

    async def count(self) -> int:
        with _storage_errors("count"):
            async with AsyncSession(self._engine) as session:
                result = await session.execute(select(func.count()).select_from(FileRecordRow))
                return int(result.scalar_one())

    async def stream(self, filters: QueryFilters | None = None) -> AsyncIterator[FileRecord]:
        """Yield FileRecords ordered by content id, then filename.

        Rows are fetched through a server-side cursor, one at a time.
        """
        statement = select(FileRecordRow).order_by(
            col(FileRecordRow.content_id),
            col(FileRecordRow.filename),
        )
        if filters is not None and filters.has_filters():
            if filters.content_ids:
                statement = statement.where(col(FileRecordRow.content_id).in_(filters.content_ids))
            if filters.url_contains:
                statement = statement.where(col(FileRecordRow.url).contains(filters.url_contains))
            if filters.filename_contains:
                statement = statement.where(col(FileRecordRow.filename).contains(filters.filename_contains))

        with _storage_errors("read"):
            async with AsyncSession(self._engine) as session:
                result = await session.stream_scalars(statement)
                async for row in result:
                    yield self._row_to_record(row)

    def _record_to_row(self, record: FileRecord) -> FileRecordRow:
        return FileRecordRow.model_validate(record.model_dump())

    def _row_to_record(self, row: FileRecordRow) -> FileRecord:
        """Convert a table row to a domain FileRecord.

        SQLite doesn't preserve timezone info, so UTC is restored.
        """
        data = row.model_dump()
        for key in ("created_at", "modified_at"):
            if data[key].tzinfo is None:
                data[key] = data[key].replace(tzinfo=timezone.utc)
        return FileRecord.model_validate(data)


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        # One shared connection, otherwise every session sees a fresh database.
        return create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}")
