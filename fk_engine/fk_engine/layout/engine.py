"""Layout strategy registry and entry points.

A strategy is any callable with the signature of :class:`LayoutStrategy`.
The two built-in strategies are registered under their
:class:`~fk_engine.models.layout.LayoutAlgorithm` value; additional ones can
be added with :func:`register_strategy`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from fk_engine.config import Settings, load_settings
from fk_engine.errors import InputError
from fk_engine.graph.cycles import cycle_subgraph
from fk_engine.layout.force_directed import force_directed_layout
from fk_engine.layout.hierarchical import hierarchical_layout
from fk_engine.models.cycle import Cycle
from fk_engine.models.graph import DependencyGraph, ForeignKeyEdge, TableNode
from fk_engine.models.layout import GraphLayout, LayoutAlgorithm
from fk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


class LayoutStrategy(Protocol):
    """Positions a node/edge set.  Edges always reference known nodes."""

    def __call__(
        self,
        nodes: Sequence[TableNode],
        edges: Sequence[ForeignKeyEdge],
        settings: Settings,
        *,
        strict: bool = False,
    ) -> GraphLayout: ...


_STRATEGIES: dict[LayoutAlgorithm, LayoutStrategy] = {
    LayoutAlgorithm.HIERARCHICAL: hierarchical_layout,
    LayoutAlgorithm.FORCE_DIRECTED: force_directed_layout,
}


def register_strategy(algorithm: LayoutAlgorithm, strategy: LayoutStrategy) -> None:
    """Install or replace the strategy used for *algorithm*."""
    _STRATEGIES[algorithm] = strategy


def get_strategy(algorithm: LayoutAlgorithm | str) -> LayoutStrategy:
    """Return the strategy registered for *algorithm*.

    Raises
    ------
    InputError
        If *algorithm* is not a known layout name.
    """
    try:
        return _STRATEGIES[LayoutAlgorithm(algorithm)]
    except ValueError:
        known = ", ".join(a.value for a in LayoutAlgorithm)
        raise InputError(f"Unknown layout algorithm '{algorithm}' (expected one of: {known})") from None


@profile_operation("layout.compute")
def compute_layout(
    nodes: Iterable[TableNode],
    edges: Iterable[ForeignKeyEdge],
    algorithm: LayoutAlgorithm | str = LayoutAlgorithm.HIERARCHICAL,
    *,
    settings: Settings | None = None,
    strict: bool = False,
) -> GraphLayout:
    """Lay out a node/edge set with the chosen algorithm.

    Edges whose endpoints are not in *nodes* are skipped with a warning.

    Parameters
    ----------
    nodes:
        Tables to position; names must be unique.
    edges:
        Foreign keys between them.
    algorithm:
        ``"hierarchical"`` or ``"force-directed"``.
    settings:
        Geometry and force-simulation parameters.
    strict:
        Raise :class:`~fk_engine.errors.ComputationLimitExceeded` instead
        of returning a truncated layout.

    Raises
    ------
    InputError
        On an unknown algorithm or duplicate node names.
    """
    strategy = get_strategy(algorithm)
    settings = settings or load_settings()

    node_list = list(nodes)
    names = {node.name for node in node_list}
    if len(names) != len(node_list):
        raise InputError("Layout nodes must have unique names")

    kept: list[ForeignKeyEdge] = []
    for edge in edges:
        if edge.source_table not in names or edge.target_table not in names:
            logger.warning(
                "Skipping edge '%s' (%s -> %s): endpoint not in the node set",
                edge.constraint_name,
                edge.source_table,
                edge.target_table,
            )
            continue
        kept.append(edge)

    layout = strategy(node_list, kept, settings, strict=strict)
    logger.debug(
        "Computed %s layout: %d nodes, %d edges",
        LayoutAlgorithm(algorithm).value,
        len(layout.nodes),
        len(layout.edges),
    )
    return layout


def compute_graph_layout(
    graph: DependencyGraph,
    algorithm: LayoutAlgorithm | str = LayoutAlgorithm.HIERARCHICAL,
    cycles: Iterable[Cycle] | None = None,
    *,
    settings: Settings | None = None,
    strict: bool = False,
) -> GraphLayout:
    """Lay out *graph*, or only the tables taking part in *cycles*."""
    if cycles is not None:
        graph = cycle_subgraph(graph, cycles)
    return compute_layout(graph.nodes, graph.edges, algorithm, settings=settings, strict=strict)
