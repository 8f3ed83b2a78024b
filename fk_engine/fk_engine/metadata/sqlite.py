"""Schema metadata read from a SQLite database.

Uses an async SQLAlchemy engine backed by ``aiosqlite``.  Tables come from
``sqlite_master``, columns from ``PRAGMA table_info`` and foreign keys from
``PRAGMA foreign_key_list``; composite keys are reassembled by grouping the
pragma rows on their ``id``.  Snapshots are cached for
``metadata_cache_ttl_seconds``.

The provider only reads.  Filter clauses passed to :meth:`count_rows` are
re-rendered from their SQLGlot AST before execution.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from fk_engine.config import Settings, load_settings
from fk_engine.errors import InputError
from fk_engine.models.schema import ColumnMetadata, ForeignKeyMetadata, SchemaSnapshot, TableMetadata
from fk_engine.simulation.row_filter import build_count_query
from fk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

_LIST_TABLES = "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def get_sqlite_engine(db_path: Path | str) -> AsyncEngine:
    """Create an async engine for the SQLite file at *db_path* (or ``:memory:``)."""
    if str(db_path) == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{Path(db_path)}"
    engine = create_async_engine(url, echo=False, connect_args={"check_same_thread": False})
    logger.info("Created SQLite engine: %s", url)
    return engine


class SQLiteMetadataProvider:
    """Metadata provider over an async SQLite engine.

    Parameters
    ----------
    engine:
        An async SQLAlchemy engine using the ``sqlite+aiosqlite`` driver.
    settings:
        Supplies ``metadata_cache_ttl_seconds``.
    database:
        Name reported on the snapshots.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        settings: Settings | None = None,
        *,
        database: str = "main",
    ) -> None:
        self._engine = engine
        self._settings = settings or load_settings()
        self._database = database
        self._cached: tuple[float, SchemaSnapshot] | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_path(cls, db_path: Path | str, settings: Settings | None = None) -> SQLiteMetadataProvider:
        return cls(get_sqlite_engine(db_path), settings, database=Path(str(db_path)).stem or "main")

    @classmethod
    def from_url(cls, url: str, settings: Settings | None = None) -> SQLiteMetadataProvider:
        return cls(create_async_engine(url, echo=False), settings)

    async def close(self) -> None:
        await self._engine.dispose()

    # -- Snapshot -------------------------------------------------------

    @profile_operation("metadata.fetch")
    async def fetch_snapshot(self, *, skip_cache: bool = False) -> SchemaSnapshot:
        """Return the current schema, from cache when it is fresh enough."""
        async with self._lock:
            now = time.monotonic()
            if not skip_cache and self._cached is not None:
                fetched_at, snapshot = self._cached
                if now - fetched_at < self._settings.metadata_cache_ttl_seconds:
                    logger.debug("Serving cached snapshot of '%s'", self._database)
                    return snapshot

            async with self._engine.connect() as conn:
                names = [row[0] for row in (await conn.execute(text(_LIST_TABLES))).all()]
                tables = [await self._read_table(conn, name) for name in names]

            snapshot = SchemaSnapshot(database=self._database, tables=tables)
            self._cached = (now, snapshot)
            logger.info("Fetched schema of '%s': %d tables", self._database, len(tables))
            return snapshot

    async def _read_table(self, conn: AsyncConnection, name: str) -> TableMetadata:
        quoted = _quote(name)

        info = (await conn.execute(text(f"PRAGMA table_info({quoted})"))).mappings().all()
        columns = [
            ColumnMetadata(
                name=row["name"],
                data_type=row["type"] or "",
                is_primary_key=bool(row["pk"]),
                nullable=not bool(row["notnull"]),
                default=row["dflt_value"],
            )
            for row in info
        ]

        fk_rows = (await conn.execute(text(f"PRAGMA foreign_key_list({quoted})"))).mappings().all()
        row_count = (await conn.execute(text(f"SELECT COUNT(*) FROM {quoted}"))).scalar_one()

        return TableMetadata(
            name=name,
            columns=columns,
            row_count=row_count,
            foreign_keys=_group_foreign_keys(fk_rows),
        )

    # -- Counts ---------------------------------------------------------

    async def count_rows(self, table: str, where_clause: str | None = None) -> int | None:
        """Count rows of *table*, optionally restricted by a validated filter.

        Raises
        ------
        InputError
            If the database rejects the query (e.g. unknown table).
        """
        query = build_count_query(table, where_clause)
        try:
            async with self._engine.connect() as conn:
                return (await conn.execute(text(query))).scalar_one()
        except SQLAlchemyError as exc:
            logger.warning("Row count failed for '%s': %s", table, exc)
            raise InputError(f"Could not count rows of '{table}': {exc}") from exc


def _group_foreign_keys(rows: Any) -> list[ForeignKeyMetadata]:
    """Fold ``PRAGMA foreign_key_list`` rows into one entry per constraint id."""
    grouped: dict[int, list[Any]] = defaultdict(list)
    for row in rows:
        grouped[row["id"]].append(row)

    foreign_keys: list[ForeignKeyMetadata] = []
    for fk_id in sorted(grouped):
        parts = sorted(grouped[fk_id], key=lambda r: r["seq"])
        first = parts[0]
        target_columns = [r["to"] for r in parts]
        foreign_keys.append(
            ForeignKeyMetadata(
                target_table=first["table"],
                source_columns=[r["from"] for r in parts],
                # NULL "to" columns mean the parent's primary key.
                target_columns=[] if any(c is None for c in target_columns) else target_columns,
                on_delete=first["on_delete"],
                on_update=first["on_update"],
            )
        )
    return foreign_keys
