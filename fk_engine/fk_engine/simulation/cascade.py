"""Cascade impact simulation for ``DELETE`` statements.

Walks the dependency graph breadth-first from the target table along
*incoming* foreign keys (a delete in the referenced table reaches the
tables that reference it) and records what the database would do at each
hop:

* ``CASCADE`` -- matching child rows are deleted and the walk continues
  from the child.
* ``RESTRICT`` / ``NO ACTION`` -- the delete would be rejected; the hop is
  recorded as a blocking constraint and the walk stops there.
* ``SET NULL`` / ``SET DEFAULT`` -- child rows survive with rewritten FK
  columns; the walk stops there.

Every table is visited at most once.  When a table is reachable through
several paths the first one discovered wins (BFS, edges sorted by source
table then constraint name).  Reaching a table that is already on the
current path is a cycle re-entry and is reported, never re-counted.

Nothing is executed: row counts come from the graph and matched-row counts
from the caller.  Traversals are deterministic.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from fk_engine.config import Settings, load_settings
from fk_engine.graph.severity import blast_radius_severity, cascade_depth_severity
from fk_engine.models.cycle import Severity
from fk_engine.models.graph import DependencyGraph, FKAction, ForeignKeyEdge, TableNode
from fk_engine.models.simulation import (
    AffectedTableEntry,
    BlockingConstraint,
    CascadePath,
    CascadeSimulationResult,
    CircularReference,
    RowFilter,
    SimulatedAction,
    SimulationWarning,
    WarningType,
)
from fk_engine.simulation.row_filter import validate_where_clause
from fk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

_DELETING_ACTIONS = (SimulatedAction.DELETE, SimulatedAction.CASCADE)


def estimate_matching_rows(child_rows: int, deleted_parent_rows: int, parent_rows: int) -> int:
    """Estimate the child rows that reference the deleted parent rows.

    Rows are assumed to be spread evenly over the parent, so the estimate is
    ``ceil(child_rows * deleted / parent_rows)``, never more than
    *child_rows*.
    """
    if parent_rows <= 0 or deleted_parent_rows <= 0 or child_rows <= 0:
        return 0
    estimate = -(-child_rows * deleted_parent_rows // parent_rows)
    return min(child_rows, estimate)


@dataclass(frozen=True)
class _Visit:
    """A queued table whose rows are being deleted."""

    table: str
    depth: int
    deleted_rows: int
    path: tuple[str, ...]


class CascadeSimulator:
    """Simulate deletes against one immutable dependency graph.

    Parameters
    ----------
    graph:
        The dependency graph of the current schema snapshot.
    settings:
        Supplies ``max_cascade_depth`` and ``blast_radius_threshold``
        defaults.
    """

    def __init__(self, graph: DependencyGraph, settings: Settings | None = None) -> None:
        self._graph = graph
        self._settings = settings or load_settings()

    def simulate(
        self,
        target_table: str,
        row_filter: RowFilter | None = None,
        *,
        max_depth: int | None = None,
        blast_radius_threshold: int | None = None,
    ) -> CascadeSimulationResult:
        """Simulate ``DELETE FROM target_table [WHERE ...]``.

        Parameters
        ----------
        target_table:
            Table the delete is issued against.
        row_filter:
            Optional filter.  Its ``where_clause`` is validated against the
            target's columns; ``matched_rows`` is the number of rows it
            selects.  Without a count every row is assumed to match.
        max_depth:
            Hops after which the walk stops (default
            ``settings.max_cascade_depth``).
        blast_radius_threshold:
            Deleted-row count above which the impact is rated high (default
            ``settings.blast_radius_threshold``).

        Returns
        -------
        CascadeSimulationResult
            A blocked delete still lists the branches that would succeed;
            ``blocked`` is set and ``effective_deleted_rows`` is 0.

        Raises
        ------
        InputError
            If the target table is unknown or the filter is malformed or
            references unknown columns.  Raised before any traversal.
        """
        if max_depth is None:
            max_depth = self._settings.max_cascade_depth
        if blast_radius_threshold is None:
            blast_radius_threshold = self._settings.blast_radius_threshold

        target = self._graph.table(target_table)
        row_filter = row_filter or RowFilter()

        warnings: list[SimulationWarning] = []
        where_clause: str | None = None
        if row_filter.where_clause:
            where_clause = validate_where_clause(target, row_filter.where_clause)

        if row_filter.matched_rows is None:
            matched = target.row_count
            if where_clause is not None:
                warnings.append(
                    SimulationWarning(
                        type=WarningType.FILTER_ESTIMATE,
                        severity=Severity.LOW,
                        message=(
                            f"No matched-row count was supplied for the filter; assuming all "
                            f"{target.row_count} row(s) of '{target.name}' match"
                        ),
                        table=target.name,
                    )
                )
        else:
            matched = min(row_filter.matched_rows, target.row_count)

        entries: dict[str, AffectedTableEntry] = {
            target.name: AffectedTableEntry(
                table_name=target.name,
                action=SimulatedAction.DELETE,
                rows_before=target.row_count,
                rows_after=target.row_count - matched,
                affected_rows=matched,
                depth=0,
                is_target=True,
            )
        }
        paths: list[CascadePath] = []
        constraints: list[BlockingConstraint] = []
        circular: list[CircularReference] = []
        diamonds: set[str] = set()
        truncated = False
        total_nullified = 0

        visited: set[str] = {target.name}
        queue: deque[_Visit] = deque([_Visit(target.name, 0, matched, (target.name,))])

        while queue:
            visit = queue.popleft()
            if visit.deleted_rows == 0:
                continue

            parent = self._graph.table(visit.table)
            incoming = self._graph.incoming(visit.table)
            if visit.depth >= max_depth and incoming:
                if not truncated:
                    warnings.append(
                        SimulationWarning(
                            type=WarningType.MAX_DEPTH,
                            severity=Severity.HIGH,
                            message=f"Cascade analysis stopped at depth {max_depth} to prevent runaway traversal",
                            table=visit.table,
                        )
                    )
                truncated = True
                continue

            for edge in incoming:
                child = self._graph.table(edge.source_table)
                affected = estimate_matching_rows(child.row_count, visit.deleted_rows, parent.row_count)
                if affected == 0:
                    continue
                depth = visit.depth + 1

                if child.name in visit.path:
                    cycle = visit.path[visit.path.index(child.name):] + (child.name,)
                    circular.append(
                        CircularReference(
                            tables=cycle,
                            message=(
                                f"Cascade from '{visit.table}' re-enters '{child.name}' via "
                                f"'{edge.constraint_name}': {' → '.join(cycle)}"
                            ),
                        )
                    )
                    continue

                if child.name in visited:
                    if child.name not in diamonds:
                        diamonds.add(child.name)
                        first = entries[child.name]
                        warnings.append(
                            SimulationWarning(
                                type=WarningType.DIAMOND_DEPENDENCY,
                                severity=Severity.LOW,
                                message=(
                                    f"Table '{child.name}' is reachable through more than one path; "
                                    f"keeping the first ({first.action.value} via '{first.via_constraint}')"
                                ),
                                table=child.name,
                            )
                        )
                    continue
                visited.add(child.name)

                action = SimulatedAction(edge.on_delete.value)
                paths.append(
                    CascadePath(
                        id=f"path-{len(paths) + 1}",
                        source_table=visit.table,
                        target_table=child.name,
                        constraint_name=edge.constraint_name,
                        action=action,
                        depth=depth,
                        affected_rows=affected,
                        columns=edge.source_columns,
                    )
                )

                if edge.on_delete.deletes_rows:
                    entries[child.name] = AffectedTableEntry(
                        table_name=child.name,
                        action=action,
                        rows_before=child.row_count,
                        rows_after=child.row_count - affected,
                        affected_rows=affected,
                        depth=depth,
                        via_constraint=edge.constraint_name,
                    )
                    queue.append(_Visit(child.name, depth, affected, visit.path + (child.name,)))
                elif edge.on_delete.blocks_delete:
                    entries[child.name] = AffectedTableEntry(
                        table_name=child.name,
                        action=action,
                        rows_before=child.row_count,
                        rows_after=child.row_count,
                        depth=depth,
                        via_constraint=edge.constraint_name,
                    )
                    constraints.append(
                        BlockingConstraint(
                            table=child.name,
                            constraint_name=edge.constraint_name,
                            referenced_table=visit.table,
                            action=action,
                            message=(
                                f'Table "{child.name}" has {affected} row(s) with {action.value} '
                                f'constraint "{edge.constraint_name}" that will prevent deletion'
                            ),
                        )
                    )
                else:
                    entries[child.name] = AffectedTableEntry(
                        table_name=child.name,
                        action=action,
                        rows_before=child.row_count,
                        rows_after=child.row_count,
                        affected_rows=affected,
                        depth=depth,
                        via_constraint=edge.constraint_name,
                    )
                    total_nullified += affected
                    warnings.extend(_nullify_warnings(child, edge))

        affected_tables = tuple(entries.values())
        total_deleted = sum(e.deleted_rows for e in affected_tables if e.action in _DELETING_ACTIONS)
        reached_depth = max(e.depth for e in affected_tables)

        warnings.extend(
            _summary_warnings(
                affected_tables,
                total_deleted=total_deleted,
                matched=matched,
                total_nullified=total_nullified,
                reached_depth=reached_depth,
                circular=circular,
                threshold=blast_radius_threshold,
            )
        )

        result = CascadeSimulationResult(
            target_table=target.name,
            where_clause=where_clause,
            total_affected_rows=total_deleted,
            total_nullified_rows=total_nullified,
            affected_tables=affected_tables,
            cascade_paths=tuple(paths),
            max_depth=reached_depth,
            warnings=tuple(warnings),
            constraints=tuple(constraints),
            circular_dependencies=tuple(circular),
            blocked=bool(constraints),
            truncated=truncated,
        )
        logger.info(
            "Simulated delete on '%s': %d row(s) across %d table(s), %d blocking constraint(s)",
            target.name,
            result.total_affected_rows,
            len(result.affected_tables),
            len(result.constraints),
        )
        return result


# ---------------------------------------------------------------------------
# Warning helpers
# ---------------------------------------------------------------------------


def _nullify_warnings(child: TableNode, edge: ForeignKeyEdge) -> list[SimulationWarning]:
    """Warnings for FK columns that SET NULL / SET DEFAULT would rewrite."""
    warnings: list[SimulationWarning] = []
    for name in edge.source_columns:
        column = child.column(name)
        if column is None or (column.nullable is None and edge.on_delete is FKAction.SET_NULL):
            warnings.append(
                SimulationWarning(
                    type=WarningType.SET_NULL_UNVERIFIED,
                    severity=Severity.LOW,
                    message=(
                        f"Nullability of '{child.name}.{name}' is unknown; "
                        f"{edge.on_delete.value} via '{edge.constraint_name}' could not be verified"
                    ),
                    table=child.name,
                )
            )
            continue

        if edge.on_delete is FKAction.SET_NULL:
            if column.nullable is False:
                warnings.append(
                    SimulationWarning(
                        type=WarningType.SET_NULL_NOT_NULL,
                        severity=Severity.HIGH,
                        message=(
                            f"SET NULL via '{edge.constraint_name}' targets NOT NULL column "
                            f"'{child.name}.{name}'; the delete would fail"
                        ),
                        table=child.name,
                    )
                )
        elif column.default is None:
            # SET DEFAULT without a declared default writes NULL.
            warnings.append(
                SimulationWarning(
                    type=WarningType.SET_DEFAULT_MISSING,
                    severity=Severity.HIGH if column.nullable is False else Severity.MEDIUM,
                    message=(
                        f"SET DEFAULT via '{edge.constraint_name}' but '{child.name}.{name}' "
                        f"declares no default; NULL would be written"
                    ),
                    table=child.name,
                )
            )
    return warnings


def _summary_warnings(
    affected_tables: tuple[AffectedTableEntry, ...],
    *,
    total_deleted: int,
    matched: int,
    total_nullified: int,
    reached_depth: int,
    circular: list[CircularReference],
    threshold: int,
) -> list[SimulationWarning]:
    warnings: list[SimulationWarning] = []

    additional = total_deleted - matched
    if additional > 0:
        cascaded_tables = sum(1 for e in affected_tables if e.action is SimulatedAction.CASCADE)
        warnings.append(
            SimulationWarning(
                type=WarningType.HIGH_IMPACT,
                severity=blast_radius_severity(additional, threshold),
                message=(
                    f"Deletion will cascade to {additional} additional row(s) "
                    f"across {cascaded_tables} table(s)"
                ),
            )
        )

    depth_severity = cascade_depth_severity(reached_depth)
    if depth_severity is not None:
        warnings.append(
            SimulationWarning(
                type=WarningType.DEEP_CASCADE,
                severity=depth_severity,
                message=f"Cascade chain reaches depth of {reached_depth} levels",
            )
        )

    if total_nullified > 0:
        nullified_tables = sum(
            1 for e in affected_tables if e.action in (SimulatedAction.SET_NULL, SimulatedAction.SET_DEFAULT)
        )
        warnings.append(
            SimulationWarning(
                type=WarningType.ROWS_NULLIFIED,
                severity=blast_radius_severity(total_nullified, threshold),
                message=(
                    f"{total_nullified} row(s) in {nullified_tables} table(s) will have "
                    f"foreign-key columns rewritten"
                ),
            )
        )

    if circular:
        warnings.append(
            SimulationWarning(
                type=WarningType.CIRCULAR_DEPENDENCY,
                severity=Severity.MEDIUM,
                message=f"Detected {len(circular)} circular dependency path(s)",
            )
        )

    return warnings


# ---------------------------------------------------------------------------
# Functional entry point
# ---------------------------------------------------------------------------


@profile_operation("cascade.simulate")
def simulate_cascade(
    graph: DependencyGraph,
    target_table: str,
    row_filter: RowFilter | None = None,
    *,
    max_depth: int | None = None,
    blast_radius_threshold: int | None = None,
    settings: Settings | None = None,
) -> CascadeSimulationResult:
    """Simulate ``DELETE FROM target_table`` on *graph*.

    See :meth:`CascadeSimulator.simulate`.
    """
    return CascadeSimulator(graph, settings).simulate(
        target_table,
        row_filter,
        max_depth=max_depth,
        blast_radius_threshold=blast_radius_threshold,
    )
