"""Indexing service that orchestrates the write path.

Coordinates file discovery, content hashing, metadata extraction, sidecar
writes, and manifest upserts. Files are processed by a bounded pool of
workers; a failure on one file is recorded and never stops its siblings.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from photocat.config import default_concurrency
from photocat.errors import ConfigurationError, ExtractionError, PhotocatError
from photocat.models.enums import FileOutcome, MergeMode
from photocat.models.file_record import FileRecord
from photocat.services.extractor import MetadataExtractor
from photocat.services.file_walker import FileWalker
from photocat.services.hasher import ContentHasher
from photocat.services.manifest_store import ManifestStore
from photocat.services.sidecar_store import SidecarStore


class IndexingResult(BaseModel):
    """Result of an indexing operation with statistics."""

    files_indexed: int = Field(ge=0)
    files_skipped: int = Field(ge=0)
    files_failed: int = Field(ge=0)
    errors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def files_seen(self) -> int:
        return self.files_indexed + self.files_skipped + self.files_failed


class FileError(BaseModel):
    """Details of a file processing error."""

    path: str
    error: str

    model_config = {"frozen": True}


@dataclass
class _Tally:
    counts: dict[FileOutcome, int] = field(default_factory=lambda: {outcome: 0 for outcome in FileOutcome})
    errors: list[FileError] = field(default_factory=list)

    def add(self, outcome: FileOutcome, error: FileError | None) -> None:
        self.counts[outcome] += 1
        if error is not None:
            self.errors.append(error)


class IndexingService:
    """Orchestrates the indexing pipeline for photo files.

    All dependencies are injected via constructor for testability.
    """

    def __init__(
        self,
        file_walker: FileWalker,
        hasher: ContentHasher,
        extractor: MetadataExtractor,
        sidecar_store: SidecarStore,
        manifest_store: ManifestStore,
        merge_mode: MergeMode = MergeMode.OVERWRITE,
        concurrency: int | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._file_walker = file_walker
        self._hasher = hasher
        self._extractor = extractor
        self._sidecar_store = sidecar_store
        self._manifest_store = manifest_store
        self._merge_mode = merge_mode
        self._concurrency = max(1, concurrency or default_concurrency())
        self._logger = logger or structlog.get_logger(__name__)

    async def index_directory(self, directory: Path) -> IndexingResult:
        """Index all matching files in a directory."""
        return await self.index_directories([directory])

    async def index_directories(self, directories: Sequence[Path]) -> IndexingResult:
        """Index all matching files below each directory.

        Args:
            directories: Root directories to walk.

        Returns:
            IndexingResult with per-outcome counts and per-file errors.

        Raises:
            ConfigurationError: If a directory is missing or not a directory.
            StorageError: If a sidecar or manifest write keeps failing.
        """
        for directory in directories:
            if not directory.is_dir():
                raise ConfigurationError(f"not a directory: {directory}")

        self._logger.info(
            "indexing_started",
            directories=[str(d) for d in directories],
            merge_mode=self._merge_mode.value,
            concurrency=self._concurrency,
        )

        await self._manifest_store.initialize_schema()

        tally = _Tally()
        queue: asyncio.Queue[Path | None] = asyncio.Queue(maxsize=self._concurrency * 2)
        try:
            async with asyncio.TaskGroup() as group:
                for _ in range(self._concurrency):
                    group.create_task(self._worker(queue, tally))
                for directory in directories:
                    async for file_path in self._file_walker.walk(directory):
                        await queue.put(file_path)
                for _ in range(self._concurrency):
                    await queue.put(None)
        except* PhotocatError as failures:
            raise failures.exceptions[0] from None

        result = IndexingResult(
            files_indexed=tally.counts[FileOutcome.INDEXED],
            files_skipped=tally.counts[FileOutcome.UNCHANGED],
            files_failed=tally.counts[FileOutcome.FAILED],
            errors=[f"{e.path}: {e.error}" for e in tally.errors],
        )

        self._logger.info(
            "indexing_completed",
            files_indexed=result.files_indexed,
            files_skipped=result.files_skipped,
            files_failed=result.files_failed,
        )
        return result

    async def _worker(self, queue: "asyncio.Queue[Path | None]", tally: _Tally) -> None:
        while (file_path := await queue.get()) is not None:
            outcome, error = await self._process_file(file_path)
            tally.add(outcome, error)

    async def _process_file(self, file_path: Path) -> tuple[FileOutcome, FileError | None]:
        """Process a single file through the indexing pipeline.

        Returns:
            The file's outcome and, for failures, the error details.
        """
        self._logger.debug("file_processing_started", file_path=str(file_path))

        try:
            content_id = await self._hasher.hash_file_async(file_path)
            record = self._create_record(file_path, content_id)
        except OSError as e:
            self._logger.warning("file_hash_failed", file_path=str(file_path), error=str(e))
            return FileOutcome.FAILED, FileError(path=str(file_path), error=str(e))

        error: FileError | None = None
        sidecar_changed = False
        if self._extractor.enabled:
            try:
                document = await self._extractor.extract(file_path)
            except ExtractionError as e:
                self._logger.warning("extraction_failed", file_path=str(file_path), error=e.reason)
                error = FileError(path=str(file_path), error=e.reason)
            except OSError as e:
                self._logger.warning("extraction_failed", file_path=str(file_path), error=str(e))
                error = FileError(path=str(file_path), error=str(e))
            else:
                sidecar_changed = await self._sidecar_store.write(content_id, document, self._merge_mode)

        record_changed = await self._manifest_store.upsert(record)

        if error is not None:
            return FileOutcome.FAILED, error

        outcome = FileOutcome.INDEXED if record_changed or sidecar_changed else FileOutcome.UNCHANGED
        self._logger.debug(
            "file_processing_completed",
            file_path=str(file_path),
            content_id=content_id,
            outcome=outcome.value,
        )
        return outcome, None

    def _create_record(self, file_path: Path, content_id: str) -> FileRecord:
        """Create a FileRecord from the file's resolved path and timestamps."""
        resolved = file_path.resolve()
        stat = resolved.stat()
        created = getattr(stat, "st_birthtime", None) or stat.st_ctime

        return FileRecord(
            url=resolved.as_uri(),
            filename=str(resolved),
            content_id=content_id,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc),
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
