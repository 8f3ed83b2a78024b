"""Raw schema metadata as returned by introspection.

These models mirror what a metadata provider reads from the database
(``PRAGMA table_info`` / ``PRAGMA foreign_key_list`` for SQLite) before the
graph builder normalises and deduplicates it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ColumnMetadata(BaseModel):
    """Column as reported by the database."""

    name: str = Field(..., min_length=1)
    data_type: str = ""
    is_primary_key: bool = False
    nullable: bool | None = None
    default: str | None = None


class ForeignKeyMetadata(BaseModel):
    """An outgoing foreign key declared on a table.

    ``name`` is optional because SQLite does not name constraints; the
    builder synthesises one when it is missing.  ``on_delete`` and
    ``on_update`` are kept as raw strings and parsed by the builder.
    """

    name: str | None = None
    target_table: str = Field(..., min_length=1)
    source_columns: list[str] = Field(default_factory=list)
    target_columns: list[str] = Field(default_factory=list)
    on_delete: str | None = None
    on_update: str | None = None


class TableMetadata(BaseModel):
    """One table with its columns, row count and outgoing foreign keys."""

    name: str = Field(..., min_length=1)
    columns: list[ColumnMetadata] = Field(default_factory=list)
    row_count: int = Field(default=0, ge=0)
    foreign_keys: list[ForeignKeyMetadata] = Field(default_factory=list)


class SchemaSnapshot(BaseModel):
    """Point-in-time schema of one database."""

    database: str = Field(default="main", description="Database identifier.")
    tables: list[TableMetadata] = Field(default_factory=list)

    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]
