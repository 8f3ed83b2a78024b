"""In-memory metadata provider and JSON snapshot loading."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError

from fk_engine.errors import InputError
from fk_engine.models.schema import SchemaSnapshot
from fk_engine.simulation.row_filter import normalize_where_clause

logger = logging.getLogger(__name__)


def load_snapshot(path: Path | str) -> SchemaSnapshot:
    """Read a :class:`SchemaSnapshot` from a JSON file.

    Raises
    ------
    InputError
        If the file is missing or does not describe a valid snapshot.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Cannot read snapshot file '{path}': {exc}") from exc
    try:
        snapshot = SchemaSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        raise InputError(f"Invalid snapshot file '{path}': {exc}") from exc
    logger.debug("Loaded snapshot '%s' with %d tables from %s", snapshot.database, len(snapshot.tables), path)
    return snapshot


class StaticMetadataProvider:
    """Serves a fixed snapshot.

    Parameters
    ----------
    snapshot:
        The schema to serve; never refreshed.
    filtered_counts:
        Known matched-row counts keyed by ``(table, where_clause)``.  Clauses
        are compared after normalisation, so formatting differences do not
        matter.  Unknown filters count as ``None``.
    """

    def __init__(
        self,
        snapshot: SchemaSnapshot,
        filtered_counts: Mapping[tuple[str, str], int] | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._counts = {
            (table, normalize_where_clause(clause)): count
            for (table, clause), count in (filtered_counts or {}).items()
        }

    @classmethod
    def from_file(cls, path: Path | str) -> StaticMetadataProvider:
        return cls(load_snapshot(path))

    async def fetch_snapshot(self, *, skip_cache: bool = False) -> SchemaSnapshot:
        return self._snapshot

    async def count_rows(self, table: str, where_clause: str | None = None) -> int | None:
        if where_clause is None:
            for meta in self._snapshot.tables:
                if meta.name == table:
                    return meta.row_count
            raise InputError(f"Table '{table}' not found in schema")
        return self._counts.get((table, normalize_where_clause(where_clause)))
