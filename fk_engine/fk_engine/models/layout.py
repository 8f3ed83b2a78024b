"""Visualisation-only layout models.

Layouts are transient: they carry no business invariants beyond every
``LayoutNode.id`` naming a table of the laid-out (sub)graph.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LayoutAlgorithm(str, Enum):
    HIERARCHICAL = "hierarchical"
    FORCE_DIRECTED = "force-directed"


class EdgeStyle(BaseModel):
    """Rendering hints derived from the edge's ON DELETE / ON UPDATE actions."""

    model_config = ConfigDict(frozen=True)

    color: str
    dashed: bool = False
    label: str | None = None
    stroke_width: int = 2


class LayoutNode(BaseModel):
    """A positioned table; ``x``/``y`` is the top-left corner."""

    model_config = ConfigDict(frozen=True)

    id: str
    x: float
    y: float
    width: float
    height: float
    layer: int | None = Field(default=None, description="Rank; set by the hierarchical layout only.")
    row_count: int = 0
    column_count: int = 0


class LayoutEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str
    on_delete: str
    on_update: str
    style: EdgeStyle


class GraphLayout(BaseModel):
    """Positioned nodes and edges produced by one layout strategy."""

    model_config = ConfigDict(frozen=True)

    algorithm: LayoutAlgorithm
    nodes: tuple[LayoutNode, ...] = ()
    edges: tuple[LayoutEdge, ...] = ()
    iterations: int = 0
    converged: bool = True
    truncated: bool = False
    broken_edges: tuple[str, ...] = Field(
        default=(),
        description="Constraints ignored when ranking to make the graph acyclic.",
    )

    def node(self, node_id: str) -> LayoutNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
