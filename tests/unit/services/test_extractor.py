"""Unit tests for the MetadataExtractor service."""

import asyncio
import json
import os
import shlex
import sys
from pathlib import Path

import pytest

from photocat.errors import ConfigurationError, ExtractionError
from photocat.services.extractor import MetadataExtractor, normalize_document


def _python_cmd(source: str) -> str:
    return shlex.join([sys.executable, "-c", source])


@pytest.fixture
def json_photo(tmp_path: Path) -> Path:
    """A file whose bytes are already the JSON a metadata tool would print."""
    path = tmp_path / "photo.jpg"
    path.write_text(json.dumps([{"Lens": "85mm f/1.8", "ISO": 100}]))
    return path


class TestNormalizeDocument:
    """Tests for shaping command output into a document."""

    def test_unwraps_single_element_array(self) -> None:
        assert normalize_document([{"Lens": "X"}]) == {"Lens": "X"}

    def test_unwraps_nested_single_element_arrays(self) -> None:
        assert normalize_document([[{"Lens": "X"}]]) == {"Lens": "X"}

    def test_keeps_objects(self) -> None:
        assert normalize_document({"Lens": "X"}) == {"Lens": "X"}

    def test_wraps_scalars(self) -> None:
        assert normalize_document(42) == {"data": 42}

    def test_wraps_multi_element_arrays(self) -> None:
        assert normalize_document([1, 2]) == {"data": [1, 2]}


class TestMetadataExtractor:
    """Tests for running the metadata command."""

    async def test_reads_command_json_from_file_on_stdin(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command="cat")

        document = await extractor.extract(json_photo)

        assert document == {"Lens": "85mm f/1.8", "ISO": 100}

    async def test_non_zero_exit_raises(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command=_python_cmd("import sys; sys.stderr.write('boom'); sys.exit(3)"))

        with pytest.raises(ExtractionError) as excinfo:
            await extractor.extract(json_photo)

        assert excinfo.value.path == str(json_photo)
        assert "exit status 3" in excinfo.value.reason
        assert "boom" in excinfo.value.reason

    async def test_non_json_output_raises(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command=_python_cmd("print('not json')"))

        with pytest.raises(ExtractionError, match="not JSON"):
            await extractor.extract(json_photo)

    async def test_timeout_kills_command(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command=_python_cmd("import time; time.sleep(5)"), timeout=0.2)

        with pytest.raises(ExtractionError, match="timed out"):
            await extractor.extract(json_photo)

    async def test_cancellation_kills_command(self, json_photo: Path, tmp_path: Path) -> None:
        pid_file = tmp_path / "child.pid"
        source = (
            f"import os, pathlib, time; pathlib.Path({str(pid_file)!r}).write_text(str(os.getpid())); time.sleep(30)"
        )
        extractor = MetadataExtractor(command=_python_cmd(source), timeout=60)

        task = asyncio.create_task(extractor.extract(json_photo))
        for _ in range(200):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        with pytest.raises(ProcessLookupError):
            os.kill(int(pid_file.read_text()), 0)

    async def test_missing_executable_raises(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command="photocat-no-such-tool-xyz")

        with pytest.raises(ExtractionError, match="cannot start"):
            await extractor.extract(json_photo)

    async def test_missing_file_raises_os_error(self, tmp_path: Path) -> None:
        extractor = MetadataExtractor(command="cat")

        with pytest.raises(OSError):
            await extractor.extract(tmp_path / "missing.jpg")

    async def test_empty_command_disables_extraction(self, json_photo: Path) -> None:
        extractor = MetadataExtractor(command="")

        assert not extractor.enabled
        with pytest.raises(ExtractionError):
            await extractor.extract(json_photo)

    def test_rejects_unparseable_command(self) -> None:
        with pytest.raises(ConfigurationError):
            MetadataExtractor(command="exiftool 'unterminated")

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigurationError):
            MetadataExtractor(command="cat", timeout=0)
