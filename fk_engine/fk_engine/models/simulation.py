"""Cascade simulation input and result models.

Results are frozen and derived purely from the graph and row counts, so a
simulation must be recomputed whenever either changes.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fk_engine.models.cycle import Severity


class SimulatedAction(str, Enum):
    """What happens to a table during a simulated delete."""

    DELETE = "DELETE"  # The originating table
    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    NO_ACTION = "NO ACTION"


class WarningType(str, Enum):
    HIGH_IMPACT = "high_impact"
    DEEP_CASCADE = "deep_cascade"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    DIAMOND_DEPENDENCY = "diamond_dependency"
    ROWS_NULLIFIED = "rows_nullified"
    SET_NULL_NOT_NULL = "set_null_not_null"
    SET_NULL_UNVERIFIED = "set_null_unverified"
    SET_DEFAULT_MISSING = "set_default_missing"
    FILTER_ESTIMATE = "filter_estimate"
    MAX_DEPTH = "max_depth"


class RowFilter(BaseModel):
    """The subset of target rows to delete.

    ``where_clause`` is a SQL boolean expression without the ``WHERE``
    keyword.  ``matched_rows`` is the count of rows it selects, when known;
    without it the simulator assumes every row matches.
    """

    where_clause: str | None = None
    matched_rows: int | None = Field(default=None, ge=0)


class AffectedTableEntry(BaseModel):
    """One table touched by a simulated delete."""

    model_config = ConfigDict(frozen=True)

    table_name: str
    action: SimulatedAction
    rows_before: int = Field(..., ge=0)
    rows_after: int = Field(..., ge=0)
    affected_rows: int = Field(default=0, ge=0, description="Rows deleted or rewritten.")
    depth: int = Field(..., ge=0, description="FK hops from the originating table.")
    is_target: bool = False
    via_constraint: str | None = None

    @property
    def deleted_rows(self) -> int:
        return self.rows_before - self.rows_after


class CascadePath(BaseModel):
    """A single hop followed (or blocked) during the simulation."""

    model_config = ConfigDict(frozen=True)

    id: str
    source_table: str = Field(..., description="Table whose rows are deleted.")
    target_table: str = Field(..., description="Referencing table reached by the hop.")
    constraint_name: str
    action: SimulatedAction
    depth: int
    affected_rows: int
    columns: tuple[str, ...] = ()


class SimulationWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: WarningType
    severity: Severity
    message: str
    table: str | None = None


class BlockingConstraint(BaseModel):
    """A RESTRICT / NO ACTION edge that would make the database reject the delete."""

    model_config = ConfigDict(frozen=True)

    table: str = Field(..., description="Referencing table holding the blocking rows.")
    constraint_name: str
    referenced_table: str
    action: SimulatedAction
    message: str


class CircularReference(BaseModel):
    """Traversal re-entered a table already on the current cascade path."""

    model_config = ConfigDict(frozen=True)

    tables: tuple[str, ...]
    message: str


class CascadeSimulationResult(BaseModel):
    """Aggregate outcome of one simulated delete.

    With partial reporting, a blocked delete (``blocked=True``) still lists
    the branches that would succeed; ``effective_deleted_rows`` is what the
    database would actually remove.
    """

    model_config = ConfigDict(frozen=True)

    target_table: str
    where_clause: str | None = None
    total_affected_rows: int = Field(default=0, ge=0, description="Rows deleted across all tables.")
    total_nullified_rows: int = Field(default=0, ge=0, description="Rows whose FK columns are rewritten.")
    affected_tables: tuple[AffectedTableEntry, ...] = ()
    cascade_paths: tuple[CascadePath, ...] = ()
    max_depth: int = 0
    warnings: tuple[SimulationWarning, ...] = ()
    constraints: tuple[BlockingConstraint, ...] = ()
    circular_dependencies: tuple[CircularReference, ...] = ()
    blocked: bool = False
    truncated: bool = False

    @property
    def effective_deleted_rows(self) -> int:
        return 0 if self.blocked else self.total_affected_rows

    def entry(self, table_name: str) -> AffectedTableEntry | None:
        for entry in self.affected_tables:
            if entry.table_name == table_name:
                return entry
        return None

    def warnings_of(self, warning_type: WarningType) -> list[SimulationWarning]:
        return [w for w in self.warnings if w.type == warning_type]
