from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from photocat.config import MANIFEST_COLUMNS


class DerivedRow(BaseModel):
    """A FileRecord joined with its normalized sidecar fields for one query."""

    url: str
    filename: str
    content_id: str
    created_at: datetime
    modified_at: datetime
    date_taken: datetime
    has_exif_date: bool
    fields: dict[str, str | None] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def value(self, field: str) -> str | None:
        return self.fields.get(field)

    def as_csv_row(self, field_names: tuple[str, ...] | list[str]) -> list[Any]:
        manifest = [getattr(self, column) for column in MANIFEST_COLUMNS]
        manifest[3] = self.created_at.isoformat()
        manifest[4] = self.modified_at.isoformat()
        return manifest + [self.fields.get(name) for name in field_names]
