"""Unit tests for the ContentHasher service."""

import hashlib
import io
from pathlib import Path

import pytest

from photocat.services.hasher import ContentHasher


class TestContentHasher:
    """Tests for SHA-256 content ids."""

    def test_hashes_stream_contents(self) -> None:
        hasher = ContentHasher()

        assert hasher.hash_stream(io.BytesIO(b"photo bytes")) == hashlib.sha256(b"photo bytes").hexdigest()

    def test_block_size_does_not_change_digest(self) -> None:
        data = bytes(range(256)) * 100

        small = ContentHasher(block_size=7).hash_stream(io.BytesIO(data))
        large = ContentHasher().hash_stream(io.BytesIO(data))

        assert small == large == hashlib.sha256(data).hexdigest()

    def test_empty_file_has_digest(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.jpg"
        path.write_bytes(b"")

        assert ContentHasher().hash_file(path) == hashlib.sha256(b"").hexdigest()

    def test_same_content_at_two_paths_shares_id(self, tmp_path: Path) -> None:
        first = tmp_path / "a.jpg"
        second = tmp_path / "nested" / "b.jpg"
        second.parent.mkdir()
        first.write_bytes(b"same")
        second.write_bytes(b"same")

        hasher = ContentHasher()

        assert hasher.hash_file(first) == hasher.hash_file(second)

    async def test_hash_file_async(self, tmp_path: Path) -> None:
        path = tmp_path / "a.jpg"
        path.write_bytes(b"async")

        assert await ContentHasher().hash_file_async(path) == hashlib.sha256(b"async").hexdigest()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            ContentHasher().hash_file(tmp_path / "missing.jpg")
