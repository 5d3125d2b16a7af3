"""Content hashing for files, streamed in fixed-size blocks."""

import asyncio
import hashlib
from pathlib import Path
from typing import BinaryIO

_BLOCK_SIZE = 1024 * 1024


class ContentHasher:
    """Computes the SHA-256 content id of a byte stream or file."""

    def __init__(self, block_size: int = _BLOCK_SIZE) -> None:
        self._block_size = block_size

    def hash_stream(self, stream: BinaryIO) -> str:
        digest = hashlib.sha256()
        while block := stream.read(self._block_size):
            digest.update(block)
        return digest.hexdigest()

    def hash_file(self, path: Path) -> str:
        """Hash a file's contents.

        Raises:
            OSError: If the file cannot be opened or read.
        """
        with path.open("rb") as stream:
            return self.hash_stream(stream)

    async def hash_file_async(self, path: Path) -> str:
        return await asyncio.to_thread(self.hash_file, path)
