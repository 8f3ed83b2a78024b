"""Circular foreign-key dependency detection.

Cycles are enumerated with :func:`networkx.simple_cycles` on the
referencing -> referenced projection of a :class:`DependencyGraph`.
Parallel constraints between the same pair of tables collapse into a
single hop, so each node sequence is reported once together with every
constraint involved.

Enumeration is worst-case exponential, so two safety valves apply: a bound
on cycle length and a cap on the number of cycles.  Hitting either marks
the report as truncated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import networkx as nx

from fk_engine.config import Settings, load_settings
from fk_engine.errors import ComputationLimitExceeded
from fk_engine.graph.severity import cycle_severity_for_actions
from fk_engine.models.cycle import BreakingSuggestion, Cycle, CycleCheck, CycleReport
from fk_engine.models.graph import DependencyGraph, FKAction, ForeignKeyEdge
from fk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

# Which action represents a hop carried by several parallel constraints.
_HOP_ACTION_RANK: dict[FKAction, int] = {
    FKAction.NO_ACTION: 0,
    FKAction.SET_DEFAULT: 1,
    FKAction.SET_NULL: 1,
    FKAction.RESTRICT: 2,
    FKAction.CASCADE: 3,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def canonical_rotation(tables: Sequence[str]) -> tuple[str, ...]:
    """Rotate *tables* so that it starts at the lexicographically smallest name."""
    if not tables:
        return ()
    start = min(range(len(tables)), key=lambda i: tables[i])
    return tuple(tables[start:]) + tuple(tables[:start])


def format_cycle_path(tables: Sequence[str]) -> str:
    """Render ``a → b → a`` for the cycle ``(a, b)``."""
    return " → ".join([*tables, tables[0]])


def _hops(graph: DependencyGraph, tables: Sequence[str]) -> list[list[ForeignKeyEdge]]:
    n = len(tables)
    return [graph.edges_between(tables[i], tables[(i + 1) % n]) for i in range(n)]


def _verify_cycle(graph: DependencyGraph, tables: Sequence[str]) -> bool:
    """Re-walk *tables* and confirm every hop exists in *graph*."""
    if not tables or len(set(tables)) != len(tables):
        return False
    return all(_hops(graph, tables))


def _build_cycle(graph: DependencyGraph, tables: Sequence[str]) -> Cycle:
    hops = _hops(graph, tables)

    constraint_names: list[str] = []
    all_actions: list[FKAction] = []
    edge_actions: list[FKAction] = []
    for hop in hops:
        constraint_names.extend(e.constraint_name for e in hop)
        actions = [e.on_delete for e in hop]
        all_actions.extend(actions)
        edge_actions.append(max(actions, key=lambda a: _HOP_ACTION_RANK[a]))

    has_cascade = FKAction.CASCADE in all_actions
    has_restrict = FKAction.RESTRICT in all_actions
    path = format_cycle_path(tables)

    message = f"Circular dependency detected: {path}"
    if has_cascade:
        message += " (contains CASCADE operations)"
    if has_restrict:
        message += " (contains RESTRICT constraints)"

    return Cycle(
        tables=tuple(tables),
        path=path,
        severity=cycle_severity_for_actions(all_actions),
        cascade_risk=has_cascade,
        restrict_present=has_restrict,
        constraint_names=tuple(constraint_names),
        edge_actions=tuple(edge_actions),
        message=message,
    )


def _table_digraph(graph: DependencyGraph) -> nx.DiGraph:
    """Collapse parallel constraints into one edge per table pair."""
    return nx.DiGraph(graph.to_networkx())


def _has_cycle_longer_than(digraph: nx.DiGraph, nodes: set[str], max_length: int, budget: int) -> bool:
    """Whether the component *nodes* holds an elementary cycle over *max_length* tables.

    At most *budget* cycles are inspected.  A component whose cycles cannot
    be exhausted within the budget counts as holding a longer cycle.
    """
    for inspected, cycle in enumerate(nx.simple_cycles(digraph.subgraph(nodes))):
        if len(cycle) > max_length or inspected >= budget:
            return True
    return False


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


@profile_operation("cycles.detect")
def analyze_cycles(graph: DependencyGraph, *, max_length: int, max_cycles: int) -> CycleReport:
    """Enumerate the elementary cycles of *graph*.

    Parameters
    ----------
    graph:
        The dependency graph to inspect.
    max_length:
        Longest cycle (in tables) to enumerate.
    max_cycles:
        Enumeration stops after this many distinct cycles.

    Returns
    -------
    CycleReport
        Cycles sorted by descending severity, then length, then tables.
        ``truncated`` is set when a limit may have hidden cycles, and
        ``limits`` names the limits involved.
    """
    digraph = _table_digraph(graph)
    limits: list[str] = []
    limit_reasons: list[str] = []

    # A component larger than the bound only matters if it has a longer cycle.
    hiding = [
        c
        for c in nx.strongly_connected_components(digraph)
        if len(c) > max_length and _has_cycle_longer_than(digraph, c, max_length, max_cycles)
    ]
    if hiding:
        largest = max(len(c) for c in hiding)
        limits.append("max_cycle_length")
        limit_reasons.append(
            f"A strongly connected group of {largest} tables has cycles longer than the "
            f"maximum cycle length of {max_length}; they were not enumerated"
        )

    seen: set[tuple[str, ...]] = set()
    cycles: list[Cycle] = []
    for nodes in nx.simple_cycles(digraph, length_bound=max_length):
        key = canonical_rotation(nodes)
        if key in seen:
            continue
        if not _verify_cycle(graph, key):
            logger.warning("Discarding cycle that does not re-walk: %s", format_cycle_path(key))
            continue
        if len(cycles) >= max_cycles:
            limits.append("max_cycles")
            limit_reasons.append(f"Stopped after {max_cycles} cycles")
            break
        seen.add(key)
        cycles.append(_build_cycle(graph, key))

    cycles.sort(key=lambda c: (-c.severity.rank, c.length, c.tables))
    return CycleReport(
        cycles=tuple(cycles),
        truncated=bool(limits),
        limits=tuple(limits),
        limit_reason="; ".join(limit_reasons) or None,
    )


def resolve_cycle_report(report: CycleReport, *, strict: bool = False) -> list[Cycle]:
    """Apply the truncation policy to *report* and return its cycles.

    Raises
    ------
    ComputationLimitExceeded
        With ``strict=True``, when the report is truncated.  ``limit``
        holds the comma-separated names of every limit that fired.
    """
    if report.truncated:
        if strict:
            raise ComputationLimitExceeded(
                ", ".join(report.limits),
                report.limit_reason or "Cycle enumeration truncated",
                partial=list(report.cycles),
            )
        logger.warning("Cycle detection truncated: %s", report.limit_reason)
    return list(report.cycles)


def detect_cycles(
    graph: DependencyGraph,
    *,
    max_length: int | None = None,
    max_cycles: int | None = None,
    strict: bool = False,
    settings: Settings | None = None,
) -> list[Cycle]:
    """Return every circular dependency in *graph*.

    Limits default to ``settings.max_cycle_length`` and
    ``settings.max_cycles``.  When a limit truncates enumeration the partial
    list is returned and a warning is logged.

    Raises
    ------
    ComputationLimitExceeded
        With ``strict=True``, when a limit truncated enumeration.  The
        partial list is attached as ``partial``.
    """
    settings = settings or load_settings()
    if max_length is None:
        max_length = settings.max_cycle_length
    if max_cycles is None:
        max_cycles = settings.max_cycles
    report = analyze_cycles(graph, max_length=max_length, max_cycles=max_cycles)
    logger.debug(
        "Detected %d cycles (%d high severity)",
        len(report.cycles),
        report.high_severity_count,
    )
    return resolve_cycle_report(report, strict=strict)


# ---------------------------------------------------------------------------
# Editing aids
# ---------------------------------------------------------------------------


def would_create_cycle(
    graph: DependencyGraph,
    source_table: str,
    target_table: str,
    on_delete: FKAction | str = FKAction.NO_ACTION,
) -> CycleCheck:
    """Check whether adding ``source_table -> target_table`` closes a cycle.

    The shortest existing path from *target_table* back to *source_table*
    determines the reported cycle.

    Raises
    ------
    InputError
        If either table is not in *graph*.
    """
    graph.table(source_table)
    graph.table(target_table)

    proposed = ForeignKeyEdge(
        constraint_name=f"temp_fk_{source_table}_{target_table}",
        source_table=source_table,
        target_table=target_table,
        on_delete=FKAction.parse(on_delete),
    )

    if source_table == target_table:
        tables: list[str] = [source_table]
    else:
        try:
            back_path = nx.shortest_path(_table_digraph(graph), target_table, source_table)
        except nx.NetworkXNoPath:
            return CycleCheck(would_create_cycle=False)
        tables = [source_table, *back_path[:-1]]

    augmented = DependencyGraph(tables=graph.nodes, edges=[*graph.edges, proposed])
    return CycleCheck(
        would_create_cycle=True,
        cycle=_build_cycle(augmented, canonical_rotation(tables)),
    )


def get_breaking_suggestions(cycle: Cycle, graph: DependencyGraph) -> list[BreakingSuggestion]:
    """Suggest constraints whose change would defuse *cycle*.

    CASCADE hops are the riskiest and come first; NO ACTION hops are
    offered as weak links.  RESTRICT and SET NULL/DEFAULT hops are left
    alone.
    """
    names = set(cycle.constraint_names)
    cascade: list[BreakingSuggestion] = []
    weak: list[BreakingSuggestion] = []

    for hop in _hops(graph, cycle.tables):
        for edge in hop:
            if edge.constraint_name not in names:
                continue
            if edge.on_delete is FKAction.CASCADE:
                cascade.append(
                    BreakingSuggestion(
                        constraint_name=edge.constraint_name,
                        source_table=edge.source_table,
                        target_table=edge.target_table,
                        current_action=edge.on_delete,
                        suggestion="Change ON DELETE to RESTRICT or SET NULL",
                        reason="CASCADE operations in circular dependencies can cause unexpected data loss",
                    )
                )
            elif edge.on_delete is FKAction.NO_ACTION:
                weak.append(
                    BreakingSuggestion(
                        constraint_name=edge.constraint_name,
                        source_table=edge.source_table,
                        target_table=edge.target_table,
                        current_action=edge.on_delete,
                        suggestion="Consider removing this constraint or changing to SET NULL",
                        reason="This is a potential weak link that could break the circular dependency",
                    )
                )

    return cascade + weak


def cycle_subgraph(graph: DependencyGraph, cycles: Iterable[Cycle]) -> DependencyGraph:
    """Induced subgraph over every table that takes part in *cycles*."""
    tables: set[str] = set()
    for cycle in cycles:
        tables.update(cycle.tables)
    return graph.subgraph(tables)
