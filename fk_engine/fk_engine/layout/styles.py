"""Node sizing and edge styling shared by every layout strategy."""

from __future__ import annotations

from collections.abc import Sequence

from fk_engine.config import Settings
from fk_engine.models.graph import FKAction, ForeignKeyEdge, TableNode
from fk_engine.models.layout import EdgeStyle, LayoutEdge

EDGE_COLORS: dict[FKAction, str] = {
    FKAction.CASCADE: "#eab308",
    FKAction.RESTRICT: "#ef4444",
    FKAction.SET_NULL: "#3b82f6",
    FKAction.SET_DEFAULT: "#3b82f6",
}
DEFAULT_EDGE_COLOR = "#6b7280"


def edge_style(on_delete: FKAction, on_update: FKAction) -> EdgeStyle:
    """Colour by ON DELETE; dashed when ON UPDATE does something."""
    return EdgeStyle(
        color=EDGE_COLORS.get(on_delete, DEFAULT_EDGE_COLOR),
        dashed=on_update is not FKAction.NO_ACTION,
        label=None if on_delete is FKAction.NO_ACTION else on_delete.value,
    )


def edge_label(edge: ForeignKeyEdge) -> str:
    """``ON DELETE x`` / ``ON UPDATE y`` lines for non-default actions."""
    parts = []
    if edge.on_delete is not FKAction.NO_ACTION:
        parts.append(f"ON DELETE {edge.on_delete.value}")
    if edge.on_update is not FKAction.NO_ACTION:
        parts.append(f"ON UPDATE {edge.on_update.value}")
    return "\n".join(parts)


def node_size(table: TableNode, settings: Settings) -> tuple[float, float]:
    """Width and height of a table box; height grows with the column count."""
    height = max(
        settings.node_min_height,
        settings.node_header_height + len(table.columns) * settings.column_row_height,
    )
    return settings.node_width, height


def layout_edge_id(edge: ForeignKeyEdge) -> str:
    """Constraint names are only unique per table, so qualify with the source."""
    return f"{edge.source_table}.{edge.constraint_name}"


def build_layout_edges(edges: Sequence[ForeignKeyEdge]) -> tuple[LayoutEdge, ...]:
    """Styled layout edges in a stable order."""
    return tuple(
        LayoutEdge(
            id=layout_edge_id(edge),
            source=edge.source_table,
            target=edge.target_table,
            on_delete=edge.on_delete.value,
            on_update=edge.on_update.value,
            style=edge_style(edge.on_delete, edge.on_update),
        )
        for edge in sorted(edges, key=lambda e: (e.source_table, e.constraint_name))
    )
