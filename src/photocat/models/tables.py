"""SQLModel table definitions for the manifest database.

Kept apart from the frozen pydantic ``FileRecord`` domain model: SQLModel
needs mutable rows for ORM updates, while domain models stay immutable.
Field names match the domain model so conversion goes through
``model_dump()`` / ``model_validate()``.
"""

from datetime import datetime

from sqlmodel import Field, SQLModel


class FileRecordRow(SQLModel, table=True):
    """One row per (path, content id) pair ever indexed."""

    __tablename__ = "fileindex"

    filename: str = Field(primary_key=True)
    content_id: str = Field(primary_key=True, index=True)
    schema_version: str
    url: str
    created_at: datetime
    modified_at: datetime
