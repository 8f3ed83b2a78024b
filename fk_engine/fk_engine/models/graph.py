"""Graph model: tables, foreign-key edges, and the dependency graph aggregate.

Edges point **from** the referencing table **to** the referenced table
(``order_items -> orders``).  A delete in the referenced table therefore
propagates along *incoming* edges.

A :class:`DependencyGraph` is built once per schema snapshot and never
patched; any schema change produces a fresh instance.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field

from fk_engine.errors import GraphConsistencyError, InputError

# ---------------------------------------------------------------------------
# Foreign-key actions
# ---------------------------------------------------------------------------


class FKAction(str, Enum):
    """Referential action applied to dependent rows on DELETE / UPDATE."""

    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    NO_ACTION = "NO ACTION"

    @classmethod
    def parse(cls, value: str | FKAction | None) -> FKAction:
        """Normalise an introspected action string.

        ``None`` and the empty string map to ``NO ACTION`` (the SQL default).
        Case, surrounding whitespace and ``_`` separators are ignored.

        Raises
        ------
        InputError
            If *value* is not a recognised referential action.
        """
        if isinstance(value, FKAction):
            return value
        if value is None:
            return cls.NO_ACTION
        normalized = " ".join(value.replace("_", " ").split()).upper()
        if not normalized:
            return cls.NO_ACTION
        try:
            return cls(normalized)
        except ValueError:
            raise InputError(f"Unknown foreign-key action '{value}'") from None

    @property
    def deletes_rows(self) -> bool:
        return self is FKAction.CASCADE

    @property
    def blocks_delete(self) -> bool:
        return self in (FKAction.RESTRICT, FKAction.NO_ACTION)

    @property
    def nullifies(self) -> bool:
        """True for actions that rewrite the FK column instead of deleting."""
        return self in (FKAction.SET_NULL, FKAction.SET_DEFAULT)


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------


class ColumnInfo(BaseModel):
    """A single column of a table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name.")
    data_type: str = Field(default="", description="Declared type as reported by the database.")
    is_primary_key: bool = Field(default=False, description="Part of the primary key.")
    nullable: bool | None = Field(
        default=None,
        description="Whether NULLs are allowed; None when the source does not report it.",
    )
    default: str | None = Field(default=None, description="Declared default expression.")


class TableNode(BaseModel):
    """A table in the dependency graph, keyed by name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique table name.")
    columns: tuple[ColumnInfo, ...] = Field(default=(), description="Columns in declaration order.")
    row_count: int = Field(default=0, ge=0, description="Current number of rows.")

    @property
    def primary_key(self) -> list[str]:
        return [c.name for c in self.columns if c.is_primary_key]

    def column(self, name: str) -> ColumnInfo | None:
        """Return the column called *name* (case-insensitive), if any."""
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None


class ForeignKeyEdge(BaseModel):
    """A foreign-key constraint: ``source_table`` references ``target_table``."""

    model_config = ConfigDict(frozen=True)

    constraint_name: str = Field(..., min_length=1, description="Constraint identifier.")
    source_table: str = Field(..., min_length=1, description="Referencing (child) table.")
    source_columns: tuple[str, ...] = Field(default=(), description="FK columns in the child.")
    target_table: str = Field(..., min_length=1, description="Referenced (parent) table.")
    target_columns: tuple[str, ...] = Field(default=(), description="Referenced columns in the parent.")
    on_delete: FKAction = Field(default=FKAction.NO_ACTION)
    on_update: FKAction = Field(default=FKAction.NO_ACTION)

    @property
    def is_self_reference(self) -> bool:
        return self.source_table == self.target_table


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Immutable set of tables and the foreign keys between them.

    Parameters
    ----------
    tables:
        Table nodes; names must be unique.
    edges:
        Foreign-key edges; both endpoints must be present in *tables*.
    inconsistencies:
        Non-fatal consistency messages recorded while building the graph.

    Raises
    ------
    GraphConsistencyError
        If an edge references a table that is not in *tables*.
    """

    def __init__(
        self,
        tables: Iterable[TableNode],
        edges: Iterable[ForeignKeyEdge] = (),
        inconsistencies: Iterable[str] = (),
    ) -> None:
        self._tables: dict[str, TableNode] = {}
        for table in tables:
            if table.name in self._tables:
                raise InputError(f"Duplicate table '{table.name}' in graph")
            self._tables[table.name] = table

        self._edges: tuple[ForeignKeyEdge, ...] = tuple(edges)
        self._incoming: dict[str, list[ForeignKeyEdge]] = {name: [] for name in self._tables}
        self._outgoing: dict[str, list[ForeignKeyEdge]] = {name: [] for name in self._tables}
        for edge in self._edges:
            for endpoint in (edge.source_table, edge.target_table):
                if endpoint not in self._tables:
                    raise GraphConsistencyError(edge.constraint_name, edge.source_table, endpoint)
            self._outgoing[edge.source_table].append(edge)
            self._incoming[edge.target_table].append(edge)

        self._inconsistencies: tuple[str, ...] = tuple(inconsistencies)

    # -- Accessors ------------------------------------------------------

    @property
    def tables(self) -> dict[str, TableNode]:
        return dict(self._tables)

    @property
    def nodes(self) -> list[TableNode]:
        return list(self._tables.values())

    @property
    def edges(self) -> list[ForeignKeyEdge]:
        return list(self._edges)

    @property
    def inconsistencies(self) -> list[str]:
        return list(self._inconsistencies)

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def table(self, name: str) -> TableNode:
        """Return the node for *name*.

        Raises
        ------
        InputError
            If the table does not exist in this graph.
        """
        try:
            return self._tables[name]
        except KeyError:
            raise InputError(f"Table '{name}' not found in schema") from None

    def incoming(self, table: str) -> list[ForeignKeyEdge]:
        """Edges whose referenced table is *table*, sorted by source then name."""
        return sorted(
            self._incoming.get(table, []),
            key=lambda e: (e.source_table, e.constraint_name),
        )

    def outgoing(self, table: str) -> list[ForeignKeyEdge]:
        """Edges declared on *table*, sorted by target then name."""
        return sorted(
            self._outgoing.get(table, []),
            key=lambda e: (e.target_table, e.constraint_name),
        )

    def edges_between(self, source: str, target: str) -> list[ForeignKeyEdge]:
        return [e for e in self.outgoing(source) if e.target_table == target]

    # -- Derived graphs -------------------------------------------------

    def subgraph(self, tables: Iterable[str]) -> DependencyGraph:
        """Induced subgraph over *tables* (unknown names are ignored)."""
        keep = {t for t in tables if t in self._tables}
        return DependencyGraph(
            tables=[node for name, node in self._tables.items() if name in keep],
            edges=[e for e in self._edges if e.source_table in keep and e.target_table in keep],
        )

    def to_networkx(self) -> nx.MultiDiGraph:
        """Project onto a NetworkX multigraph keyed by constraint name.

        Nodes carry the :class:`TableNode` under ``"table"``; edges carry
        the :class:`ForeignKeyEdge` under ``"fk"``.  Nodes and edges are
        inserted in sorted order so that traversals are reproducible.
        """
        graph = nx.MultiDiGraph()
        for name in sorted(self._tables):
            graph.add_node(name, table=self._tables[name])
        for edge in sorted(self._edges, key=lambda e: (e.source_table, e.target_table, e.constraint_name)):
            graph.add_edge(edge.source_table, edge.target_table, key=edge.constraint_name, fk=edge)
        return graph

    # -- Dunder ---------------------------------------------------------

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return (
            self._tables == other._tables
            and sorted(self._edges, key=_edge_sort_key) == sorted(other._edges, key=_edge_sort_key)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DependencyGraph(tables={len(self._tables)}, edges={len(self._edges)})"


def _edge_sort_key(edge: ForeignKeyEdge) -> tuple[str, str, str]:
    return (edge.source_table, edge.target_table, edge.constraint_name)
