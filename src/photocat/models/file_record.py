from datetime import datetime
from typing import Any, ClassVar

from pydantic import Field, ValidationInfo, field_validator

from photocat.models.base import (
    SchemaVersioned,
    coerce_utc_datetime,
    ensure_hex_digest,
    ensure_non_empty_text,
)


class FileRecord(SchemaVersioned):
    """One indexed file path and the content it pointed at when indexed."""

    SCHEMA_VERSION: ClassVar[str] = "file_record.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    url: str
    filename: str
    content_id: str
    created_at: datetime
    modified_at: datetime

    @field_validator("url", "filename")
    @classmethod
    def _ensure_non_empty(cls, value: str, info: ValidationInfo) -> str:
        return ensure_non_empty_text(value, info.field_name or "value")

    @field_validator("content_id", mode="before")
    @classmethod
    def _validate_content_id(cls, value: Any) -> str:
        return ensure_hex_digest(value)

    @field_validator("created_at", "modified_at", mode="before")
    @classmethod
    def _validate_timestamps(cls, value: Any, info: ValidationInfo) -> datetime:
        return coerce_utc_datetime(value, info.field_name or "timestamp")

    @property
    def key(self) -> tuple[str, str]:
        return (self.filename, self.content_id)
