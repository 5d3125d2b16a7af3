from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from photocat.models.base import coerce_utc_datetime, ensure_hex_digest, ensure_non_empty_text

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DateRange(BaseModel):
    """Half-open ``[start, end)`` range over DateTaken.

    An open start means the epoch; an open end means the moment the range
    was created.
    """

    start: datetime | None = None
    end: datetime | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    _now: datetime = PrivateAttr(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_bounds(cls, value: Any) -> datetime | None:
        if value is None:
            return None
        if isinstance(value, date) and not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        return coerce_utc_datetime(value, "date bound")

    @model_validator(mode="after")
    def _validate_order(self) -> "DateRange":
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @property
    def lower(self) -> datetime:
        return self.start if self.start is not None else EPOCH

    @property
    def upper(self) -> datetime:
        return self.end if self.end is not None else self._now

    @property
    def bounded(self) -> bool:
        """True when either bound was given explicitly."""
        return self.start is not None or self.end is not None

    def contains(self, value: datetime) -> bool:
        return self.lower <= value < self.upper

    def last_day(self) -> date:
        """Last calendar day inside the range, using "now" for an open end."""
        return (self.upper - timedelta(microseconds=1)).date()


class QueryFilters(BaseModel):
    content_ids: list[str] | None = None
    url_contains: str | None = None
    filename_contains: str | None = None
    limit: int | None = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("content_ids", mode="before")
    @classmethod
    def _normalize_content_ids(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return [ensure_hex_digest(item) for item in value]

    def has_filters(self) -> bool:
        return any(
            value not in (None, [], "")
            for value in (
                self.content_ids,
                self.url_contains,
                self.filename_contains,
                self.limit,
            )
        )


DEFAULT_MONTHS_PER_ROW = 8


class SummaryOptions(BaseModel):
    """Parsed ``--summary-options``.

    ``counts`` holds one field group per ``count:`` directive; a group of
    several fields (``count:Lens+Model``) counts combinations of values.
    ``months_per_row`` lays heatmap months side by side when set.
    """

    counts: tuple[tuple[str, ...], ...] = ()
    months_per_row: int | None = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("counts", mode="before")
    @classmethod
    def _validate_counts(cls, value: Any) -> tuple[tuple[str, ...], ...]:
        groups = []
        for group in value:
            if isinstance(group, str):
                group = (group,)
            fields = tuple(ensure_non_empty_text(item, "count field").strip() for item in group)
            if not fields:
                raise ValueError("count group cannot be empty")
            groups.append(fields)
        return tuple(groups)

    @property
    def count_fields(self) -> tuple[str, ...]:
        """Every field named by a count group, once, in first-seen order."""
        return tuple(dict.fromkeys(field for group in self.counts for field in group))

    @property
    def wants_heatmap(self) -> bool:
        return not self.counts

    @classmethod
    def parse(cls, value: str | None) -> "SummaryOptions":
        """Parse ``count:Lens,count:Lens+Model,wrap:6`` into summary options.

        Raises:
            ValueError: On an empty field name, a bad wrap width, or an
                unknown directive.
        """
        if not value or not value.strip():
            return cls()
        counts: list[tuple[str, ...]] = []
        months_per_row: int | None = None
        for directive in value.split(","):
            directive = directive.strip()
            if not directive:
                continue
            kind, sep, argument = directive.partition(":")
            if kind == "count" and argument.strip():
                fields = tuple(field.strip() for field in argument.split("+"))
                if not all(fields):
                    raise ValueError(f"empty field in summary directive '{directive}'")
                counts.append(fields)
            elif kind == "wrap":
                months_per_row = _parse_wrap(argument) if sep else DEFAULT_MONTHS_PER_ROW
            else:
                raise ValueError(
                    f"unknown summary directive '{directive}', expected count:<field>[+<field>...] or wrap[:<months>]"
                )
        return cls(counts=tuple(counts), months_per_row=months_per_row)


def _parse_wrap(argument: str) -> int:
    try:
        months = int(argument.strip())
    except ValueError:
        raise ValueError(f"wrap expects a number of months, got '{argument}'") from None
    if months < 1:
        raise ValueError("wrap needs at least one month per row")
    return months


__all__ = ["DateRange", "QueryFilters", "SummaryOptions", "EPOCH", "DEFAULT_MONTHS_PER_ROW"]
