"""Bounded retries for storage writes."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.exc import OperationalError

from photocat.errors import StorageError

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY = 0.05

# Failures worth retrying: file-system hiccups and SQLite "database is locked".
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError, OperationalError)


async def retry_storage(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
    logger: structlog.stdlib.BoundLogger,
    attempts: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY,
) -> T:
    """Run ``operation`` until it succeeds or ``attempts`` are used up.

    Raises:
        StorageError: When the last attempt still fails.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TRANSIENT_ERRORS as e:
            if attempt == attempts:
                raise StorageError(f"{description} failed after {attempts} attempts: {e}") from e
            logger.warning(
                "storage_retry",
                description=description,
                attempt=attempt,
                error=str(e),
            )
            await asyncio.sleep(delay * attempt)
    raise StorageError(f"{description} was not attempted")
