"""Factory functions for creating and wiring photocat services.

Each factory is an async context manager that owns the manifest database
engine and disposes it on exit.
"""

from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

import structlog

from photocat.config import DEFAULT_EXTRACTION_TIMEOUT, DEFAULT_FIELDS, DEFAULT_META_CMD, Library
from photocat.models.enums import MergeMode
from photocat.models.mapping import MappingRules, load_mapping_rules
from photocat.services.extractor import MetadataExtractor
from photocat.services.file_walker import FileWalker
from photocat.services.hasher import ContentHasher
from photocat.services.index import IndexingService
from photocat.services.manifest_store import ManifestStore, create_async_engine_from_path
from photocat.services.normalizer import Normalizer
from photocat.services.query import QueryEngine
from photocat.services.sidecar_store import SidecarStore


@asynccontextmanager
async def create_indexing_service(
    library: Library,
    meta_cmd: str = DEFAULT_META_CMD,
    merge_mode: MergeMode = MergeMode.OVERWRITE,
    allowed_extensions: Iterable[str] | None = None,
    exclude_patterns: list[str] | None = None,
    concurrency: int | None = None,
    max_processes: int | None = None,
    timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
) -> AsyncIterator[IndexingService]:
    """Create an IndexingService writing into ``library``.

    Args:
        library: Validated library folder.
        meta_cmd: Metadata command; an empty string disables extraction.
        merge_mode: How new metadata combines with existing sidecars.
        allowed_extensions: File extensions to index.
        exclude_patterns: Glob patterns of files to skip, relative to each folder.
        concurrency: Number of files processed at once.
        max_processes: Cap on simultaneous metadata command processes.
        timeout: Per-file metadata command timeout in seconds.

    Yields:
        Configured IndexingService ready for use.
    """
    logger = structlog.get_logger(__name__)

    engine = create_async_engine_from_path(str(library.manifest_path))
    try:
        yield IndexingService(
            file_walker=FileWalker(
                allowed_extensions=allowed_extensions,
                exclude_patterns=exclude_patterns,
                logger=logger,
            ),
            hasher=ContentHasher(),
            extractor=MetadataExtractor(
                command=meta_cmd,
                timeout=timeout,
                max_processes=max_processes,
                logger=logger,
            ),
            sidecar_store=SidecarStore(root=library.sidecar_dir, logger=logger),
            manifest_store=ManifestStore(engine=engine, logger=logger),
            merge_mode=merge_mode,
            concurrency=concurrency,
            logger=logger,
        )
    finally:
        await engine.dispose()


@asynccontextmanager
async def create_query_engine(
    library: Library,
    fields: Sequence[str] = DEFAULT_FIELDS,
    rules: MappingRules | None = None,
) -> AsyncIterator[QueryEngine]:
    """Create a QueryEngine reading from ``library``.

    Mapping rules are loaded from the library's ``mapping.toml`` unless
    given explicitly.

    Raises:
        ConfigurationError: If the mapping file is malformed.
    """
    logger = structlog.get_logger(__name__)

    if rules is None:
        rules = load_mapping_rules(library.mapping_path)
        logger.info("mapping_rules_loaded", path=str(library.mapping_path), rule_count=len(rules))

    engine = create_async_engine_from_path(str(library.manifest_path))
    try:
        manifest_store = ManifestStore(engine=engine, logger=logger)
        await manifest_store.initialize_schema()
        yield QueryEngine(
            manifest_store=manifest_store,
            sidecar_store=SidecarStore(root=library.sidecar_dir, logger=logger),
            normalizer=Normalizer(rules=rules, fields=fields, logger=logger),
            logger=logger,
        )
    finally:
        await engine.dispose()


def create_sidecar_store(library: Library) -> SidecarStore:
    return SidecarStore(root=library.sidecar_dir, logger=structlog.get_logger(__name__))
