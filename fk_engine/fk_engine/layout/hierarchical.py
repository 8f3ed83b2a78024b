"""Layered (top-to-bottom) layout.

Referencing tables sit above the tables they reference.  Each table's layer
is its longest-path distance from a root, computed on an acyclic copy of
the graph: cycles are broken deterministically by dropping, one cycle at a
time, the lowest-priority hop (``NO ACTION`` before ``SET NULL``/``SET
DEFAULT`` before ``RESTRICT`` before ``CASCADE``; ties by constraint name).
Dropped hops are still drawn; they only stop influencing the ranking.

Tables without any foreign key to another table are collected in a trailing
layer of their own.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import networkx as nx

from fk_engine.config import Settings
from fk_engine.layout.styles import build_layout_edges, layout_edge_id, node_size
from fk_engine.models.graph import FKAction, ForeignKeyEdge, TableNode
from fk_engine.models.layout import GraphLayout, LayoutAlgorithm, LayoutNode

logger = logging.getLogger(__name__)

_BREAK_PRIORITY: dict[FKAction, int] = {
    FKAction.NO_ACTION: 0,
    FKAction.SET_NULL: 1,
    FKAction.SET_DEFAULT: 1,
    FKAction.RESTRICT: 2,
    FKAction.CASCADE: 3,
}


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _ranking_graph(names: Sequence[str], edges: Sequence[ForeignKeyEdge]) -> nx.DiGraph:
    """One edge per table pair carrying its constraints; self-loops dropped."""
    graph = nx.DiGraph()
    graph.add_nodes_from(sorted(names))
    for edge in sorted(edges, key=lambda e: (e.source_table, e.target_table, e.constraint_name)):
        if edge.is_self_reference:
            continue
        if graph.has_edge(edge.source_table, edge.target_table):
            graph[edge.source_table][edge.target_table]["fks"].append(edge)
        else:
            graph.add_edge(edge.source_table, edge.target_table, fks=[edge])
    return graph


def _hop_priority(graph: nx.DiGraph, source: str, target: str) -> tuple[int, str]:
    fks: list[ForeignKeyEdge] = graph[source][target]["fks"]
    return (
        max(_BREAK_PRIORITY[fk.on_delete] for fk in fks),
        min(fk.constraint_name for fk in fks),
    )


def break_cycles(graph: nx.DiGraph) -> list[ForeignKeyEdge]:
    """Remove hops from *graph* in place until it is acyclic.

    Returns the foreign keys whose hops were removed, in removal order.
    """
    removed: list[ForeignKeyEdge] = []
    while True:
        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            return removed
        source, target = min(
            ((u, v) for u, v, *_ in cycle),
            key=lambda hop: _hop_priority(graph, hop[0], hop[1]),
        )
        removed.extend(graph[source][target]["fks"])
        graph.remove_edge(source, target)
        logger.debug("Broke cycle for ranking by ignoring %s -> %s", source, target)


def assign_layers(graph: nx.DiGraph) -> dict[str, int]:
    """Longest-path layer of every node of the acyclic *graph*.

    Nodes with no neighbours go to a trailing layer after all others.
    """
    isolated = {n for n in graph.nodes if graph.degree(n) == 0}
    layers: dict[str, int] = {}
    for node in nx.lexicographical_topological_sort(graph):
        if node in isolated:
            continue
        preds = list(graph.predecessors(node))
        layers[node] = max(layers[p] for p in preds) + 1 if preds else 0

    trailing = max(layers.values()) + 1 if layers else 0
    for node in isolated:
        layers[node] = trailing
    return layers


def order_layers(graph: nx.DiGraph, layers: dict[str, int]) -> list[list[str]]:
    """Group nodes by layer, ordering each layer by predecessor barycenter then name."""
    if not layers:
        return []
    grouped: list[list[str]] = [[] for _ in range(max(layers.values()) + 1)]
    for node, layer in layers.items():
        grouped[layer].append(node)

    position: dict[str, int] = {}
    ordered: list[list[str]] = []
    for members in grouped:

        def barycenter(node: str) -> float:
            placed = [position[p] for p in graph.predecessors(node) if p in position]
            return sum(placed) / len(placed) if placed else float("inf")

        members.sort(key=lambda n: (barycenter(n), n))
        for index, node in enumerate(members):
            position[node] = index
        ordered.append(members)
    return ordered


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


def hierarchical_layout(
    nodes: Sequence[TableNode],
    edges: Sequence[ForeignKeyEdge],
    settings: Settings,
    *,
    strict: bool = False,
) -> GraphLayout:
    """Lay *nodes* out in layers, left-to-right within a layer.

    Layers are centred on the widest one and separated vertically by
    ``settings.layer_spacing`` below the tallest box of the layer above, so
    boxes never overlap.  *strict* is accepted for interface parity; this
    strategy has no iteration limit.
    """
    tables = {node.name: node for node in nodes}
    ranking = _ranking_graph(list(tables), edges)
    broken = break_cycles(ranking)
    layers = assign_layers(ranking)
    ordered = order_layers(ranking, layers)

    sizes = {name: node_size(table, settings) for name, table in tables.items()}
    layer_widths = [
        sum(sizes[n][0] for n in members) + settings.node_spacing * (len(members) - 1)
        for members in ordered
    ]
    widest = max(layer_widths, default=0.0)

    placed: list[LayoutNode] = []
    y = settings.layout_margin
    for layer, members in enumerate(ordered):
        x = settings.layout_margin + (widest - layer_widths[layer]) / 2
        for name in members:
            width, height = sizes[name]
            table = tables[name]
            placed.append(
                LayoutNode(
                    id=name,
                    x=x,
                    y=y,
                    width=width,
                    height=height,
                    layer=layer,
                    row_count=table.row_count,
                    column_count=len(table.columns),
                )
            )
            x += width + settings.node_spacing
        y += max(sizes[n][1] for n in members) + settings.layer_spacing

    if broken:
        logger.info("Ignored %d foreign key(s) to rank a cyclic graph", len(broken))

    return GraphLayout(
        algorithm=LayoutAlgorithm.HIERARCHICAL,
        nodes=tuple(placed),
        edges=build_layout_edges(edges),
        broken_edges=tuple(layout_edge_id(fk) for fk in broken),
    )
