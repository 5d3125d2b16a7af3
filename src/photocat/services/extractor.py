"""Runs the external metadata command for one file at a time.

The file's bytes go to the command on stdin and its stdout must be JSON.
Process count is capped by a semaphore shared by all callers, and each run
is bounded by a timeout.
"""

import asyncio
import json
import shlex
from pathlib import Path
from typing import Any

import structlog

from photocat.config import DEFAULT_EXTRACTION_TIMEOUT, DEFAULT_META_CMD, default_concurrency
from photocat.errors import ConfigurationError, ExtractionError

_STDERR_PREVIEW = 200


class MetadataExtractor:
    """Invokes a metadata command such as ``exiftool -b -j -`` per file."""

    def __init__(
        self,
        command: str = DEFAULT_META_CMD,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        max_processes: int | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        try:
            self._argv = shlex.split(command)
        except ValueError as e:
            raise ConfigurationError(f"cannot parse metadata command {command!r}: {e}") from e
        if timeout <= 0:
            raise ConfigurationError("extraction timeout must be positive")
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_processes or default_concurrency())
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def enabled(self) -> bool:
        return bool(self._argv)

    async def extract(self, path: Path) -> dict[str, Any]:
        """Run the command with ``path`` on stdin and return its JSON object.

        Raises:
            ExtractionError: On spawn failure, non-zero exit, timeout, or
                output that is not JSON.
            OSError: If the file cannot be opened.
        """
        if not self.enabled:
            raise ExtractionError(str(path), "no metadata command configured")

        async with self._semaphore:
            stdout = await self._run(path)

        try:
            parsed = json.loads(stdout)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExtractionError(str(path), f"output is not JSON: {e}") from e
        return normalize_document(parsed)

    async def _run(self, path: Path) -> bytes:
        with path.open("rb") as stdin:
            try:
                process = await asyncio.create_subprocess_exec(
                    *self._argv,
                    stdin=stdin,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ExtractionError(str(path), f"cannot start {self._argv[0]}: {e}") from e

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
            except asyncio.TimeoutError:
                self._logger.warning(
                    "extraction_timed_out",
                    file_path=str(path),
                    timeout=self._timeout,
                )
                raise ExtractionError(str(path), f"timed out after {self._timeout}s") from None
            finally:
                # Timeout or cancellation leaves the child running.
                if process.returncode is None:
                    process.kill()
                    await process.wait()

        if process.returncode != 0:
            preview = stderr.decode(errors="replace").strip()[:_STDERR_PREVIEW]
            raise ExtractionError(str(path), f"exit status {process.returncode}: {preview}")
        return stdout


def normalize_document(value: Any) -> dict[str, Any]:
    """Unwrap single-element arrays and wrap non-objects under ``data``."""
    while isinstance(value, list) and len(value) == 1:
        value = value[0]
    if isinstance(value, dict):
        return value
    return {"data": value}
