"""File-backed store holding one JSON metadata document per content id.

Documents live at ``<root>/<content_id>.json``. Writes go to a temporary
file in the same folder and are renamed into place, so readers only ever
see complete documents. Writers to the same content id are serialized by a
per-id lock; different ids never wait on each other.
"""

import asyncio
import json
import os
import tempfile
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog

from photocat.config import SIDECAR_SUFFIX
from photocat.models.base import ensure_hex_digest
from photocat.models.enums import MergeMode
from photocat.services.retry import DEFAULT_ATTEMPTS, retry_storage


def merge_documents(current: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Field-wise union where ``update`` wins; nested objects merge recursively."""
    merged = dict(current)
    for key, value in update.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = merge_documents(existing, value)
        else:
            merged[key] = value
    return merged


class KeyedLocks:
    """One asyncio lock per key, dropped once nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SidecarStore:
    """Persists and merges metadata sidecars keyed by content id."""

    def __init__(
        self,
        root: Path,
        retry_attempts: int = DEFAULT_ATTEMPTS,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._root = root
        self._retry_attempts = retry_attempts
        self._locks = KeyedLocks()
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, content_id: str) -> Path:
        return self._root / f"{ensure_hex_digest(content_id)}{SIDECAR_SUFFIX}"

    async def write(self, content_id: str, document: dict[str, Any], merge_mode: MergeMode) -> bool:
        """Write or merge a sidecar.

        Args:
            content_id: Content id the document belongs to.
            document: Newly extracted metadata.
            merge_mode: ``OVERWRITE`` replaces the stored document, ``MERGE``
                keeps stored fields the new document does not mention.

        Returns:
            True if the committed sidecar changed, False if it already held
            exactly the resulting document.

        Raises:
            StorageError: If the atomic write keeps failing.
        """
        path = self.path_for(content_id)
        async with self._locks.hold(content_id):
            try:
                current = await retry_storage(
                    lambda: asyncio.to_thread(self._read_path, path),
                    description=f"sidecar read {path.name}",
                    logger=self._logger,
                    attempts=self._retry_attempts,
                )
            except ValueError as e:
                self._logger.warning("sidecar_corrupt", content_id=content_id, error=str(e))
                current = None

            if current is not None and merge_mode == MergeMode.MERGE:
                target = merge_documents(current, document)
            else:
                target = document

            if current == target:
                self._logger.debug("sidecar_unchanged", content_id=content_id)
                return False

            payload = json.dumps(target, sort_keys=True, ensure_ascii=False)
            await retry_storage(
                lambda: asyncio.to_thread(self._atomic_write, path, payload),
                description=f"sidecar write {path.name}",
                logger=self._logger,
                attempts=self._retry_attempts,
            )

        self._logger.debug(
            "sidecar_written",
            content_id=content_id,
            merge_mode=merge_mode.value,
            field_count=len(target),
        )
        return True

    async def read(self, content_id: str) -> dict[str, Any] | None:
        """Return the committed document for ``content_id``, or None."""
        return await asyncio.to_thread(self._read_path, self.path_for(content_id))

    async def read_all(self) -> AsyncIterator[tuple[str, dict[str, Any]]]:
        """Yield ``(content_id, document)`` for every committed sidecar.

        Unreadable or corrupt sidecars are logged and skipped.
        """
        for path in await asyncio.to_thread(lambda: sorted(self._sidecar_paths())):
            try:
                document = await asyncio.to_thread(self._read_path, path)
            except (OSError, ValueError) as e:
                self._logger.warning("sidecar_read_failed", path=str(path), error=str(e))
                continue
            if document is not None:
                yield path.stem, document

    def _sidecar_paths(self) -> Iterator[Path]:
        with os.scandir(self._root) as entries:
            for entry in entries:
                if not entry.name.endswith(SIDECAR_SUFFIX) or not entry.is_file():
                    continue
                stem = entry.name[: -len(SIDECAR_SUFFIX)]
                if stem and all(ch in "0123456789abcdef" for ch in stem):
                    yield Path(entry.path)

    def _read_path(self, path: Path) -> dict[str, Any] | None:
        try:
            with path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            return None
        if not isinstance(document, dict):
            raise ValueError(f"sidecar {path.name} does not hold a JSON object")
        return document

    def _atomic_write(self, path: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
