"""One analysis pass over a schema snapshot.

The metadata fetch is the only awaited step: :meth:`DependencyAnalyzer.open_pass`
reads a snapshot once and builds an immutable graph from it.  Everything
an :class:`AnalysisPass` computes afterwards is derived from that graph, so
a schema change during the pass is not observed.

Usage::

    analyzer = DependencyAnalyzer(SQLiteMetadataProvider.from_path("app.db"))
    analysis = await analyzer.open_pass()
    cycles = analysis.detect_cycles()
    result = await analysis.simulate_delete("orders", "status = 'void'")
"""

from __future__ import annotations

import logging

from fk_engine.config import Settings, load_settings
from fk_engine.graph.builder import MissingTargetPolicy, build_dependency_graph
from fk_engine.graph.cycles import (
    analyze_cycles,
    get_breaking_suggestions,
    resolve_cycle_report,
    would_create_cycle,
)
from fk_engine.layout.engine import compute_graph_layout
from fk_engine.metadata.provider import MetadataProvider
from fk_engine.models.cycle import BreakingSuggestion, Cycle, CycleCheck, CycleReport
from fk_engine.models.graph import DependencyGraph, FKAction
from fk_engine.models.layout import GraphLayout, LayoutAlgorithm
from fk_engine.models.schema import SchemaSnapshot
from fk_engine.models.simulation import CascadeSimulationResult, RowFilter
from fk_engine.simulation.cascade import simulate_cascade
from fk_engine.simulation.row_filter import validate_where_clause

logger = logging.getLogger(__name__)


class AnalysisPass:
    """Analyses over one immutable :class:`DependencyGraph`."""

    def __init__(
        self,
        snapshot: SchemaSnapshot,
        graph: DependencyGraph,
        provider: MetadataProvider,
        settings: Settings,
    ) -> None:
        self.snapshot = snapshot
        self.graph = graph
        self._provider = provider
        self._settings = settings
        self._cycle_report: CycleReport | None = None

    def cycle_report(self) -> CycleReport:
        """Cycle enumeration for the graph, computed once per pass."""
        if self._cycle_report is None:
            self._cycle_report = analyze_cycles(
                self.graph,
                max_length=self._settings.max_cycle_length,
                max_cycles=self._settings.max_cycles,
            )
        return self._cycle_report

    def detect_cycles(self, *, strict: bool = False) -> list[Cycle]:
        """Circular dependencies of the graph.

        The truncation policy is applied on every call, so ``strict=True``
        raises :class:`~fk_engine.errors.ComputationLimitExceeded` even when
        the enumeration was first requested leniently.
        """
        return resolve_cycle_report(self.cycle_report(), strict=strict)

    def breaking_suggestions(self, cycle: Cycle) -> list[BreakingSuggestion]:
        return get_breaking_suggestions(cycle, self.graph)

    def would_create_cycle(
        self,
        source_table: str,
        target_table: str,
        on_delete: FKAction | str = FKAction.NO_ACTION,
    ) -> CycleCheck:
        return would_create_cycle(self.graph, source_table, target_table, on_delete)

    def layout(
        self,
        algorithm: LayoutAlgorithm | str = LayoutAlgorithm.HIERARCHICAL,
        *,
        cycles_only: bool = False,
        strict: bool = False,
    ) -> GraphLayout:
        """Lay out the full graph, or only the tables on a cycle."""
        cycles = self.detect_cycles() if cycles_only else None
        return compute_graph_layout(
            self.graph,
            algorithm,
            cycles,
            settings=self._settings,
            strict=strict,
        )

    async def simulate_delete(
        self,
        table: str,
        where_clause: str | None = None,
        *,
        max_depth: int | None = None,
    ) -> CascadeSimulationResult:
        """Simulate ``DELETE FROM table [WHERE where_clause]``.

        The filter is validated before the provider is asked how many rows
        it matches; an unknown count falls back to every row.

        Raises
        ------
        InputError
            If the table is unknown or the filter is invalid.
        """
        node = self.graph.table(table)
        row_filter = RowFilter()
        if where_clause:
            normalized = validate_where_clause(node, where_clause)
            matched = await self._provider.count_rows(table, normalized)
            row_filter = RowFilter(where_clause=normalized, matched_rows=matched)

        return simulate_cascade(
            self.graph,
            table,
            row_filter,
            max_depth=max_depth,
            settings=self._settings,
        )


class DependencyAnalyzer:
    """Opens analysis passes against a metadata provider.

    Parameters
    ----------
    provider:
        Source of schema snapshots and row counts.
    settings:
        Engine settings; loaded from the environment when omitted.
    on_missing_target:
        Policy for foreign keys referencing unknown tables.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        settings: Settings | None = None,
        *,
        on_missing_target: MissingTargetPolicy = "drop",
    ) -> None:
        self._provider = provider
        self._settings = settings or load_settings()
        self._on_missing_target = on_missing_target

    async def open_pass(self, *, skip_cache: bool = False) -> AnalysisPass:
        """Fetch a snapshot and build the graph for a new pass."""
        snapshot = await self._provider.fetch_snapshot(skip_cache=skip_cache)
        graph = build_dependency_graph(snapshot, on_missing_target=self._on_missing_target)
        logger.info(
            "Opened analysis pass on '%s': %d tables, %d foreign keys, %d inconsistencies",
            snapshot.database,
            len(graph),
            len(graph.edges),
            len(graph.inconsistencies),
        )
        return AnalysisPass(snapshot, graph, self._provider, self._settings)
