"""File walker service for discovering photo files in directories."""

import asyncio
from collections.abc import AsyncIterator, Iterable
from pathlib import Path

import structlog

from photocat.config import DEFAULT_EXTENSIONS


def parse_extensions(value: str) -> list[str]:
    """Split ``"jpg, .HEIC,png"`` into ``["jpg", "heic", "png"]``."""
    return [item.strip().lstrip(".").lower() for item in value.split(",") if item.strip().lstrip(".")]


class FileWalker:
    """Walks directories to discover files with allowed extensions.

    Extensions compare case-insensitively. Exclude patterns use glob syntax
    relative to the walked directory. Uses asyncio.to_thread to avoid
    blocking the event loop during I/O.
    """

    def __init__(
        self,
        allowed_extensions: Iterable[str] | None = None,
        exclude_patterns: list[str] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        extensions = allowed_extensions if allowed_extensions is not None else DEFAULT_EXTENSIONS
        self._allowed_extensions = frozenset(ext.lstrip(".").lower() for ext in extensions)
        self._exclude_patterns = exclude_patterns or []
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def allowed_extensions(self) -> frozenset[str]:
        return self._allowed_extensions

    async def walk(self, directory: Path) -> AsyncIterator[Path]:
        """Walk directory and yield files with an allowed extension.

        Args:
            directory: Root directory to walk.

        Yields:
            Path objects for matching files, in sorted order.

        Raises:
            FileNotFoundError: If directory does not exist.
            NotADirectoryError: If path is not a directory.
        """
        if not directory.exists():
            raise FileNotFoundError(f"Directory not found: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {directory}")

        self._logger.info(
            "directory_walk_started",
            directory=str(directory),
            allowed_extensions=sorted(self._allowed_extensions),
            exclude_patterns=self._exclude_patterns,
        )

        files = await asyncio.to_thread(self._discover_files, directory)
        for file_path in files:
            yield file_path

        self._logger.info(
            "directory_walk_completed",
            directory=str(directory),
            file_count=len(files),
        )

    def _discover_files(self, directory: Path) -> list[Path]:
        """Synchronously collect matching files."""
        return sorted(
            file_path
            for file_path in directory.rglob("*")
            if self._is_allowed(file_path) and file_path.is_file() and not self._is_excluded(file_path, directory)
        )

    def _is_allowed(self, file_path: Path) -> bool:
        return file_path.suffix.lstrip(".").lower() in self._allowed_extensions

    def _is_excluded(self, file_path: Path, root: Path) -> bool:
        """Check if file matches any exclude pattern."""
        if not self._exclude_patterns:
            return False

        relative_path = file_path.relative_to(root)
        for pattern in self._exclude_patterns:
            if relative_path.match(pattern):
                return True
        return False
