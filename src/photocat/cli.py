"""Photo catalog CLI.

Indexes photo folders into a library of content-addressed metadata
sidecars, then exports or summarizes the catalog over date ranges.
"""

import asyncio
import csv
import logging
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
import typer
from pydantic import ValidationError

from photocat.config import (
    DEFAULT_EXTENSIONS,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_FIELDS,
    DEFAULT_META_CMD,
    MANIFEST_COLUMNS,
    Library,
)
from photocat.errors import ConfigurationError, StorageError
from photocat.models.enums import MergeMode
from photocat.models.query import DateRange, QueryFilters, SummaryOptions
from photocat.services.factory import create_indexing_service, create_query_engine, create_sidecar_store
from photocat.services.file_walker import FileWalker, parse_extensions
from photocat.services.index import IndexingResult
from photocat.services.report import format_summary


def configure_logging(level: str = "info") -> None:
    """Send structured logs to stderr, keeping stdout for command output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        context_class=dict,
        cache_logger_on_first_use=False,
    )


configure_logging()

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="photocat",
    help="""Catalog photos by content and summarize their metadata.

Examples:

  # Index a folder into a library
  photocat index -l ./library ~/Pictures

  # Export everything taken in 2023 as CSV
  photocat show -l ./library -d 2023-01-01 -D 2024-01-01

  # Count photos per lens
  photocat summarize -l ./library --summary-options count:Lens

  # Cross-tabulate lens against camera model
  photocat summarize -l ./library --summary-options count:Lens+Model""",
    rich_markup_mode="markdown",
)

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"]
_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "1"):
        return True
    if lowered in ("false", "no", "0"):
        return False
    raise typer.BadParameter(f"expected true or false, got '{value}'")


def _parse_log_level(value: str) -> str:
    if value.lower() not in _LOG_LEVELS:
        raise typer.BadParameter(f"expected one of {', '.join(_LOG_LEVELS)}")
    return value.lower()


def _split_list(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _fail(message: str) -> typer.Exit:
    logger.error("command_failed", error=message)
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _open_library(path: str, writable: bool = False) -> Library:
    try:
        return Library.open(path, writable=writable)
    except ConfigurationError as e:
        raise _fail(str(e)) from e


def _build_range(date_from: Optional[datetime], date_to: Optional[datetime]) -> DateRange:
    try:
        return DateRange(start=date_from, end=date_to)
    except ValidationError as e:
        raise _fail(f"invalid date range: {e.errors()[0]['msg']}") from e


def _build_filters(
    content_id: Optional[str],
    url: Optional[str],
    filename: Optional[str],
    limit: Optional[int],
) -> QueryFilters:
    try:
        return QueryFilters(
            content_ids=_split_list(content_id),
            url_contains=url,
            filename_contains=filename,
            limit=limit,
        )
    except ValidationError as e:
        raise _fail(f"invalid filter: {e.errors()[0]['msg']}") from e


_LIBRARY = typer.Option(
    ...,
    "--library",
    "-l",
    envvar="PHOTOCAT_LIBRARY",
    help="Library data folder holding the manifest, sidecars, and mapping.toml",
)
_DATE_FROM = typer.Option(
    None,
    "--date-from",
    "-d",
    formats=_DATE_FORMATS,
    help="Earliest DateTaken to include (ISO date, inclusive; default: epoch)",
)
_DATE_TO = typer.Option(
    None,
    "--date-to",
    "-D",
    formats=_DATE_FORMATS,
    help="DateTaken upper bound (ISO date, exclusive; default: now)",
)
_CONTENT_ID = typer.Option(None, "--content-id", "-s", help="Comma-separated content ids to include")
_URL = typer.Option(None, "--url", "-u", help="Only rows whose URL contains this text")
_FILENAME = typer.Option(None, "--filename", "-f", help="Only rows whose path contains this text")
_LIMIT = typer.Option(None, "--limit", "-N", min=1, help="Maximum number of rows")
_EXCLUDE = typer.Option(
    None,
    "--exclude",
    "-e",
    help="Comma-separated glob patterns, relative to each folder, of files to skip",
)


@app.callback()
def main(
    log_level: str = typer.Option(
        "info",
        "--log-level",
        envvar="PHOTOCAT_LOG_LEVEL",
        callback=_parse_log_level,
        help="Log level for stderr output",
    ),
) -> None:
    """Catalog photos by content and summarize their metadata."""
    configure_logging(log_level)


@app.command()
def index(
    folders: List[str] = typer.Argument(..., help="Folders to index"),
    library: str = _LIBRARY,
    meta_cmd: str = typer.Option(
        DEFAULT_META_CMD,
        "--meta-cmd",
        help="Command reading image bytes on stdin and printing JSON (empty string disables)",
    ),
    meta_merge: str = typer.Option(
        "false",
        "--meta-merge",
        help="true: merge new metadata into existing sidecars; false: overwrite them",
    ),
    allowed_extensions: str = typer.Option(
        ",".join(DEFAULT_EXTENSIONS),
        "--allowed-extensions",
        help="Comma-separated file extensions to index",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-c",
        min=1,
        help="Files processed at once (default: CPU count)",
    ),
    max_processes: Optional[int] = typer.Option(
        None,
        "--max-processes",
        min=1,
        help="Metadata command processes running at once (default: CPU count)",
    ),
    timeout: float = typer.Option(
        DEFAULT_EXTRACTION_TIMEOUT,
        "--timeout",
        min=0.001,
        help="Seconds before a metadata command run is abandoned",
    ),
    exclude: Optional[str] = _EXCLUDE,
) -> None:
    """Index photo folders into the library."""
    merge_mode = MergeMode.MERGE if _parse_bool(meta_merge) else MergeMode.OVERWRITE
    lib = _open_library(library, writable=True)
    targets = [Path(folder) for folder in folders]
    for target in targets:
        if not target.is_dir():
            raise _fail(f"folder not found: {target}")

    async def run_indexing() -> IndexingResult:
        async with create_indexing_service(
            library=lib,
            meta_cmd=meta_cmd,
            merge_mode=merge_mode,
            allowed_extensions=parse_extensions(allowed_extensions),
            exclude_patterns=_split_list(exclude),
            concurrency=concurrency,
            max_processes=max_processes,
            timeout=timeout,
        ) as service:
            return await service.index_directories(targets)

    try:
        result = asyncio.run(run_indexing())
    except (ConfigurationError, StorageError) as e:
        raise _fail(str(e)) from e

    for error in result.errors:
        logger.warning("indexing_error", error=error)

    typer.echo(
        f"Indexed {result.files_indexed} files ({result.files_skipped} unchanged, {result.files_failed} failed)"
    )


@app.command("list")
def list_files(
    folders: List[str] = typer.Argument(..., help="Folders to walk"),
    allowed_extensions: str = typer.Option(
        ",".join(DEFAULT_EXTENSIONS),
        "--allowed-extensions",
        help="Comma-separated file extensions to list",
    ),
    exclude: Optional[str] = _EXCLUDE,
) -> None:
    """List files that index would pick up, without touching the library."""
    walker = FileWalker(
        allowed_extensions=parse_extensions(allowed_extensions),
        exclude_patterns=_split_list(exclude),
    )

    async def collect() -> list[Path]:
        found: list[Path] = []
        for folder in folders:
            found.extend([path async for path in walker.walk(Path(folder))])
        return found

    try:
        paths = asyncio.run(collect())
    except (FileNotFoundError, NotADirectoryError) as e:
        raise _fail(str(e)) from e

    for path in paths:
        typer.echo(str(path))


@app.command()
def show(
    library: str = _LIBRARY,
    date_from: Optional[datetime] = _DATE_FROM,
    date_to: Optional[datetime] = _DATE_TO,
    fields: Optional[str] = typer.Option(
        None,
        "--fields",
        help="Comma-separated metadata fields to export (default: all configured fields)",
    ),
    content_id: Optional[str] = _CONTENT_ID,
    url: Optional[str] = _URL,
    filename: Optional[str] = _FILENAME,
    limit: Optional[int] = _LIMIT,
) -> None:
    """Export catalog rows in a date range as CSV."""
    lib = _open_library(library)
    date_range = _build_range(date_from, date_to)
    filters = _build_filters(content_id, url, filename, limit)
    field_names = tuple(_split_list(fields) or DEFAULT_FIELDS)

    writer = csv.writer(sys.stdout, lineterminator="\n")

    async def run_show() -> int:
        async with create_query_engine(lib, fields=field_names) as engine:
            writer.writerow([*MANIFEST_COLUMNS, *field_names])
            rows = 0
            async for row in engine.show(date_range, filters):
                writer.writerow(row.as_csv_row(field_names))
                rows += 1
            return rows

    try:
        rows = asyncio.run(run_show())
    except (ConfigurationError, StorageError) as e:
        raise _fail(str(e)) from e
    sys.stdout.flush()
    logger.info("show_completed", rows=rows)


@app.command()
def summarize(
    library: str = _LIBRARY,
    date_from: Optional[datetime] = _DATE_FROM,
    date_to: Optional[datetime] = _DATE_TO,
    summary_options: Optional[str] = typer.Option(
        None,
        "--summary-options",
        help=(
            "Comma-separated directives: count:<field>[+<field>...] counts values or combinations, "
            "wrap[:<months>] lays heatmap months side by side. Without count directives, draws a calendar heatmap"
        ),
    ),
    content_id: Optional[str] = _CONTENT_ID,
    url: Optional[str] = _URL,
    filename: Optional[str] = _FILENAME,
    limit: Optional[int] = _LIMIT,
) -> None:
    """Summarize catalog rows in a date range."""
    try:
        options = SummaryOptions.parse(summary_options)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--summary-options") from e
    lib = _open_library(library)
    date_range = _build_range(date_from, date_to)
    filters = _build_filters(content_id, url, filename, limit)

    async def run_summary():
        async with create_query_engine(lib) as engine:
            return await engine.summarize(date_range, options, filters)

    try:
        result = asyncio.run(run_summary())
    except (ConfigurationError, StorageError) as e:
        raise _fail(str(e)) from e

    typer.echo(format_summary(result))


@app.command("meta-columns")
def meta_columns(
    library: str = _LIBRARY,
) -> None:
    """List configured metadata fields and the raw fields seen in sidecars."""
    lib = _open_library(library)
    store = create_sidecar_store(lib)

    async def scan() -> tuple[int, Counter]:
        seen: Counter = Counter()
        sidecars = 0
        async for _, document in store.read_all():
            sidecars += 1
            seen.update(document.keys())
        return sidecars, seen

    sidecars, seen = asyncio.run(scan())

    typer.echo("Configured fields:")
    for name in DEFAULT_FIELDS:
        typer.echo(f"  {name}")
    if not sidecars:
        typer.echo("No metadata sidecars are available.")
        return
    typer.echo(f"Observed fields ({sidecars} sidecars):")
    for name, count in sorted(seen.items(), key=lambda item: (-item[1], item[0])):
        typer.echo(f"  {name}: {count}")


@app.command()
def version() -> None:
    """Show version information."""
    from photocat import __version__

    typer.echo(f"photocat {__version__}")
