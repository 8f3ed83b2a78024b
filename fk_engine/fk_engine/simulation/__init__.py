"""Cascade impact simulation for deletes.

All analysis is read-only.  Nothing is executed against the database.
"""

from __future__ import annotations

from fk_engine.simulation.cascade import (
    CascadeSimulator,
    estimate_matching_rows,
    simulate_cascade,
)
from fk_engine.simulation.row_filter import (
    build_count_query,
    normalize_where_clause,
    parse_where_clause,
    validate_where_clause,
)

__all__ = [
    "CascadeSimulator",
    "build_count_query",
    "estimate_matching_rows",
    "normalize_where_clause",
    "parse_where_clause",
    "simulate_cascade",
    "validate_where_clause",
]
