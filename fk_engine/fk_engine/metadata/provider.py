"""Interface of the schema metadata source consumed by the engine."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fk_engine.models.schema import SchemaSnapshot


@runtime_checkable
class MetadataProvider(Protocol):
    """Supplies schema snapshots and row counts for one database."""

    async def fetch_snapshot(self, *, skip_cache: bool = False) -> SchemaSnapshot:
        """Return tables, columns, row counts and foreign keys.

        *skip_cache* forces a fresh read instead of a cached snapshot.
        """
        ...

    async def count_rows(self, table: str, where_clause: str | None = None) -> int | None:
        """Count the rows of *table* matching *where_clause*.

        Returns ``None`` when the provider cannot evaluate the filter.
        """
        ...
