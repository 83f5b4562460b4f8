"""Repository tables: entries (files and folders) and their metadata."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, LargeBinary
from sqlmodel import Field, SQLModel

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class RepositoryEntryBase(SQLModel):
    """Columns shared by every repository entry."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True, unique=True)
    parent_path: str | None = Field(default=None, index=True)
    name: str = Field(default="")
    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    is_folder: bool = Field(default=False)
    hidden: bool = Field(default=False)
    content: bytes | None = Field(default=None, sa_type=LargeBinary)
    mime_type: str = Field(default="application/octet-stream")
    size_bytes: int = Field(default=0)
    owner: str | None = Field(default=None)
    creator_id: str | None = Field(default=None)
    original_path: str | None = Field(default=None)
    deleted_by: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )


class RepositoryEntry(RepositoryEntryBase, table=True):
    """Default entry table, ``genfile_repository_entries``."""

    __tablename__ = "genfile_repository_entries"


class RepositoryEntryMetadata(SQLModel, table=True):
    """One metadata key/value pair of an entry."""

    __tablename__ = "genfile_repository_metadata"

    id: int | None = Field(default=None, primary_key=True)
    entry_id: str = Field(index=True)
    key: str = Field(default="")
    value: str = Field(default="")
