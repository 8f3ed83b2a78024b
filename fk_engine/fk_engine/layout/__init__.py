"""Positioned graph layouts for visualisation."""

from fk_engine.layout.engine import (
    LayoutStrategy,
    compute_graph_layout,
    compute_layout,
    get_strategy,
    register_strategy,
)
from fk_engine.layout.force_directed import force_directed_layout
from fk_engine.layout.hierarchical import hierarchical_layout
from fk_engine.layout.styles import edge_label, edge_style, node_size

__all__ = [
    "LayoutStrategy",
    "compute_graph_layout",
    "compute_layout",
    "edge_label",
    "edge_style",
    "force_directed_layout",
    "get_strategy",
    "hierarchical_layout",
    "node_size",
    "register_strategy",
]
