"""Turns raw sidecar metadata into the values queries see.

Three things happen here: raw values are rewritten through the mapping
rules, ``DateTaken`` is resolved from the capture-time fields (falling back
to the file's creation time), and ``LensInferred`` is derived for cameras
that do not report a lens.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, NamedTuple

import structlog

from photocat.config import DEFAULT_FIELDS
from photocat.models.file_record import FileRecord
from photocat.models.mapping import MappingRules, value_to_text
from photocat.models.row import DerivedRow

DATE_SOURCE_FIELDS: tuple[str, ...] = ("CreateDate", "DateTimeOriginal", "MetadataDate")

# Tried in order; sub-second variants first.
DATE_FORMATS: tuple[str, ...] = (
    "%Y:%m:%d %H:%M:%S.%f%z",
    "%Y:%m:%d %H:%M:%S.%f",
    "%Y:%m:%d %H:%M:%S%z",
    "%Y:%m:%d %H:%M:%S",
)

PHONE_MAKERS: tuple[str, ...] = ("iphone", "ipad", "pixel", "galaxy", "samsung", "huawei", "xiaomi", "oneplus")

DATE_TAKEN = "DateTaken"
DATE_TAKEN_STR = "DateTakenStr"
LENS_INFERRED = "LensInferred"


class ResolvedDate(NamedTuple):
    value: datetime
    raw: str | None
    from_exif: bool


def parse_capture_time(raw: str) -> datetime | None:
    """Parse an EXIF-style timestamp as wall-clock UTC, or None."""
    text = raw.strip()
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    return None


class Normalizer:
    """Applies mapping rules and derived fields to one sidecar at a time.

    The rule set is loaded once per command and passed in; it never changes
    while a query runs.
    """

    def __init__(
        self,
        rules: MappingRules | None = None,
        fields: Sequence[str] = DEFAULT_FIELDS,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._rules = rules or MappingRules()
        self._fields = tuple(fields)
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def rules(self) -> MappingRules:
        return self._rules

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    def normalize(self, field: str, value: Any) -> str | None:
        """Return the canonical text for ``value`` of ``field``.

        Values compare as text against each rule's match set; unmatched
        values come back unchanged as text. ``None`` stays ``None``.
        """
        if value is None:
            return None
        raw = value_to_text(value)
        mapped = self._rules.lookup(field, raw)
        return raw if mapped is None else mapped

    def resolve_date_taken(self, document: Mapping[str, Any], fallback: datetime) -> ResolvedDate:
        for source in DATE_SOURCE_FIELDS:
            raw = document.get(source)
            if not isinstance(raw, str):
                continue
            parsed = parse_capture_time(raw)
            if parsed is not None:
                return ResolvedDate(value=parsed, raw=raw, from_exif=True)
        return ResolvedDate(value=fallback, raw=None, from_exif=False)

    def infer_lens(self, document: Mapping[str, Any]) -> Any:
        lens = document.get("Lens")
        if lens is not None:
            return lens
        model = document.get("Model")
        if isinstance(model, str):
            lowered = model.lower()
            if any(maker in lowered for maker in PHONE_MAKERS):
                return model
        return None

    def derive_row(
        self,
        record: FileRecord,
        document: Mapping[str, Any] | None,
        fields: Sequence[str] | None = None,
    ) -> DerivedRow:
        """Project a FileRecord and its sidecar into a DerivedRow."""
        document = document or {}
        taken = self.resolve_date_taken(document, record.created_at)
        if not taken.from_exif:
            self._logger.debug("date_taken_from_filesystem", content_id=record.content_id)
        values: dict[str, str | None] = {}
        for name in fields if fields is not None else self._fields:
            if name == DATE_TAKEN:
                values[name] = taken.value.isoformat() if taken.from_exif else None
            elif name == DATE_TAKEN_STR:
                values[name] = taken.raw
            elif name == LENS_INFERRED:
                values[name] = self.normalize(name, self.infer_lens(document))
            else:
                values[name] = self.normalize(name, document.get(name))

        return DerivedRow(
            url=record.url,
            filename=record.filename,
            content_id=record.content_id,
            created_at=record.created_at,
            modified_at=record.modified_at,
            date_taken=taken.value,
            has_exif_date=taken.from_exif,
            fields=values,
        )
