"""Read path: joins the manifest with sidecars and answers show/summarize.

Manifest rows stream in content-id order, so duplicate paths of the same
content sit next to each other and share one sidecar read. Nothing here
writes to the sidecar store.
"""

from collections import Counter
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

import structlog

from photocat.models.query import DateRange, QueryFilters, SummaryOptions
from photocat.models.row import DerivedRow
from photocat.models.summary import CountTable, SummaryResult, ValueCount
from photocat.services.manifest_store import ManifestStore
from photocat.services.normalizer import Normalizer
from photocat.services.sidecar_store import SidecarStore


def _count_order(item: tuple[tuple[str | None, ...], int]) -> tuple[int, tuple[tuple[bool, str], ...]]:
    values, count = item
    return (-count, tuple((value is None, value or "") for value in values))


class QueryEngine:
    """Answers date-ranged ``show`` and ``summarize`` queries.

    Stateless across calls; safe to run while an index is being written
    because sidecars are only ever replaced atomically.
    """

    def __init__(
        self,
        manifest_store: ManifestStore,
        sidecar_store: SidecarStore,
        normalizer: Normalizer,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._manifest_store = manifest_store
        self._sidecar_store = sidecar_store
        self._normalizer = normalizer
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def normalizer(self) -> Normalizer:
        return self._normalizer

    async def show(
        self,
        date_range: DateRange,
        filters: QueryFilters | None = None,
        fields: Sequence[str] | None = None,
    ) -> AsyncIterator[DerivedRow]:
        """Yield rows whose DateTaken falls in ``date_range``, by content id.

        Args:
            date_range: Half-open range applied to DateTaken.
            filters: Optional manifest filters and row limit.
            fields: Metadata fields to resolve; defaults to the
                normalizer's configured fields.
        """
        rows = self._rows(date_range, filters, fields)
        async with aclosing(rows):
            async for row in rows:
                yield row

    async def summarize(
        self,
        date_range: DateRange,
        options: SummaryOptions,
        filters: QueryFilters | None = None,
    ) -> SummaryResult:
        """Count rows in range, grouped per ``count:`` field group or per day.

        Value counts are sorted by count descending, then values ascending,
        with missing values after present ones on ties. The heatmap span
        follows the given bounds, an open end meaning now; with no bounds
        at all it covers the observed days.
        """
        total = 0
        no_exif_date = 0
        daily: Counter = Counter()
        groups: dict[tuple[str, ...], Counter] = {fields: Counter() for fields in options.counts}

        rows = self._rows(date_range, filters, options.count_fields)
        async with aclosing(rows):
            async for row in rows:
                total += 1
                if not row.has_exif_date:
                    no_exif_date += 1
                if options.wants_heatmap:
                    daily[row.date_taken.date()] += 1
                for fields, counter in groups.items():
                    counter[tuple(row.value(field) for field in fields)] += 1

        tables = [
            CountTable(
                fields=fields,
                counts=[
                    ValueCount(values=values, count=count)
                    for values, count in sorted(counter.items(), key=_count_order)
                ],
            )
            for fields, counter in groups.items()
        ]

        first_day = last_day = None
        if options.wants_heatmap:
            if date_range.bounded:
                first_day = date_range.start.date() if date_range.start is not None else min(daily, default=None)
                last_day = date_range.last_day()
            else:
                first_day = min(daily, default=None)
                last_day = max(daily, default=None)

        self._logger.info(
            "query_completed",
            kind="summarize",
            total=total,
            no_exif_date=no_exif_date,
            count_groups=["+".join(fields) for fields in options.counts],
        )
        return SummaryResult(
            total=total,
            no_exif_date=no_exif_date,
            tables=tables,
            daily_counts=dict(daily),
            first_day=first_day,
            last_day=last_day,
            months_per_row=options.months_per_row,
        )

    async def _rows(
        self,
        date_range: DateRange,
        filters: QueryFilters | None,
        fields: Sequence[str] | None,
    ) -> AsyncIterator[DerivedRow]:
        limit = filters.limit if filters is not None else None
        emitted = 0
        current_id: str | None = None
        document: dict[str, Any] | None = None

        records = self._manifest_store.stream(filters)
        async with aclosing(records):
            async for record in records:
                if record.content_id != current_id:
                    current_id = record.content_id
                    document = await self._load_sidecar(current_id)
                row = self._normalizer.derive_row(record, document, fields)
                if not date_range.contains(row.date_taken):
                    continue
                yield row
                emitted += 1
                if limit is not None and emitted >= limit:
                    return

    async def _load_sidecar(self, content_id: str) -> dict[str, Any] | None:
        try:
            return await self._sidecar_store.read(content_id)
        except (OSError, ValueError) as e:
            self._logger.warning("sidecar_read_failed", content_id=content_id, error=str(e))
            return None
