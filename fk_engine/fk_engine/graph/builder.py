"""Dependency graph construction from introspected schema metadata.

Turns a :class:`~fk_engine.models.schema.SchemaSnapshot` into a
:class:`~fk_engine.models.graph.DependencyGraph`: one node per table, one
edge per foreign-key constraint, pointing from the referencing table to the
referenced table.

Foreign keys reached through different introspection paths are
deduplicated, so building twice from the same metadata yields equal graphs.
A constraint whose referenced table is absent from the snapshot is dropped
and recorded as an inconsistency (or raised, under the ``"raise"`` policy).
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Literal

from fk_engine.errors import GraphConsistencyError
from fk_engine.models.graph import (
    ColumnInfo,
    DependencyGraph,
    FKAction,
    ForeignKeyEdge,
    TableNode,
)
from fk_engine.models.schema import ForeignKeyMetadata, SchemaSnapshot, TableMetadata
from fk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

MissingTargetPolicy = Literal["drop", "raise"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def synthesize_constraint_name(source: str, target: str, columns: list[str] | tuple[str, ...]) -> str:
    """Name an unnamed constraint deterministically from its endpoints."""
    suffix = "_".join(columns) if columns else "ref"
    return f"fk_{source}_{target}_{suffix}"


def _target_columns(fk: ForeignKeyMetadata, nodes: dict[str, TableNode]) -> tuple[str, ...]:
    """Referenced columns, defaulting to the primary key of the referenced table."""
    if fk.target_columns or fk.target_table not in nodes:
        return tuple(fk.target_columns)
    return tuple(nodes[fk.target_table].primary_key)


def _dedup_key(source: str, fk: ForeignKeyMetadata, nodes: dict[str, TableNode]) -> tuple[Any, ...]:
    """Structural identity of a constraint, independent of its name."""
    return (source, tuple(fk.source_columns), fk.target_table, _target_columns(fk, nodes))


def _to_node(table: TableMetadata) -> TableNode:
    return TableNode(
        name=table.name,
        columns=tuple(
            ColumnInfo(
                name=col.name,
                data_type=col.data_type,
                is_primary_key=col.is_primary_key,
                nullable=col.nullable,
                default=col.default,
            )
            for col in table.columns
        ),
        row_count=table.row_count,
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


@profile_operation("graph.build")
def build_dependency_graph(
    snapshot: SchemaSnapshot | dict[str, Any],
    *,
    on_missing_target: MissingTargetPolicy = "drop",
) -> DependencyGraph:
    """Build a dependency graph from a schema snapshot.

    Parameters
    ----------
    snapshot:
        Introspected metadata, either as a model or its ``dict`` form.
    on_missing_target:
        ``"drop"`` (default) skips a foreign key whose referenced table is
        absent and records the inconsistency on the graph; ``"raise"``
        raises instead.

    Returns
    -------
    DependencyGraph
        The graph for this snapshot.

    Raises
    ------
    GraphConsistencyError
        Under the ``"raise"`` policy, for the first unresolved reference.
    InputError
        If a foreign key carries an unknown referential action.
    """
    if not isinstance(snapshot, SchemaSnapshot):
        snapshot = SchemaSnapshot.model_validate(snapshot)

    inconsistencies: list[str] = []

    # Nodes first so that tables without any FK are represented.
    nodes: dict[str, TableNode] = {}
    kept: list[TableMetadata] = []
    for table in snapshot.tables:
        if table.name in nodes:
            msg = f"Duplicate table '{table.name}' in snapshot; keeping the first definition"
            logger.warning(msg)
            inconsistencies.append(msg)
            continue
        nodes[table.name] = _to_node(table)
        kept.append(table)

    edges: dict[tuple[Any, ...], ForeignKeyEdge] = {}
    unnamed: set[tuple[Any, ...]] = set()
    dropped: set[tuple[Any, ...]] = set()

    for table in kept:
        for fk in table.foreign_keys:
            key = _dedup_key(table.name, fk, nodes)
            if key in edges:
                # A real name replaces a synthesized one.
                if fk.name and key in unnamed:
                    edges[key] = edges[key].model_copy(update={"constraint_name": fk.name})
                    unnamed.discard(key)
                continue
            if key in dropped:
                continue

            name = fk.name or synthesize_constraint_name(table.name, fk.target_table, fk.source_columns)

            if fk.target_table not in nodes:
                error = GraphConsistencyError(name, table.name, fk.target_table)
                if on_missing_target == "raise":
                    raise error
                logger.warning("Dropping foreign key: %s", error)
                inconsistencies.append(str(error))
                dropped.add(key)
                continue

            if not fk.name:
                unnamed.add(key)
            edges[key] = ForeignKeyEdge(
                constraint_name=name,
                source_table=table.name,
                source_columns=tuple(fk.source_columns),
                target_table=fk.target_table,
                target_columns=_target_columns(fk, nodes),
                on_delete=FKAction.parse(fk.on_delete),
                on_update=FKAction.parse(fk.on_update),
            )

    logger.debug(
        "Built dependency graph for '%s': %d tables, %d foreign keys",
        snapshot.database,
        len(nodes),
        len(edges),
    )
    return DependencyGraph(tables=nodes.values(), edges=list(edges.values()), inconsistencies=inconsistencies)


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------


def get_referencing_tables(graph: DependencyGraph, table: str) -> set[str]:
    """Return every table that transitively references *table*.

    Breadth-first over incoming edges; *table* itself is only included when
    it lies on a cycle.
    """
    if not graph.has_table(table):
        return set()

    visited: set[str] = set()
    queue: deque[str] = deque(e.source_table for e in graph.incoming(table))
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(e.source_table for e in graph.incoming(current))
    return visited


def get_referenced_tables(graph: DependencyGraph, table: str) -> set[str]:
    """Return every table that *table* transitively references."""
    if not graph.has_table(table):
        return set()

    visited: set[str] = set()
    queue: deque[str] = deque(e.target_table for e in graph.outgoing(table))
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(e.target_table for e in graph.outgoing(current))
    return visited
