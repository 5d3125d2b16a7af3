from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class ValueCount(BaseModel):
    """How many rows carried one combination of values."""

    values: tuple[str | None, ...]
    count: int = Field(ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def as_tuple(self) -> tuple[str | None | int, ...]:
        return (*self.values, self.count)


class CountTable(BaseModel):
    fields: tuple[str, ...]
    counts: list[ValueCount] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @property
    def key(self) -> str:
        return "+".join(self.fields)


class SummaryResult(BaseModel):
    """Totals for a summarize query plus either count tables or daily counts."""

    total: int = Field(ge=0)
    no_exif_date: int = Field(ge=0)
    tables: list[CountTable] = Field(default_factory=list)
    daily_counts: dict[date, int] = Field(default_factory=dict)
    first_day: date | None = None
    last_day: date | None = None
    months_per_row: int | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def counts_for(self, key: str) -> list[tuple[str | None | int, ...]]:
        """Count tuples for the table named ``key`` (``Lens`` or ``Lens+Model``)."""
        for table in self.tables:
            if table.key == key:
                return [item.as_tuple() for item in table.counts]
        return []


__all__ = ["CountTable", "SummaryResult", "ValueCount"]
