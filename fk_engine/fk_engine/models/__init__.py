"""Domain models for the dependency analysis engine."""

from fk_engine.models.cycle import (
    BreakingSuggestion,
    Cycle,
    CycleCheck,
    CycleReport,
    Severity,
)
from fk_engine.models.graph import (
    ColumnInfo,
    DependencyGraph,
    FKAction,
    ForeignKeyEdge,
    TableNode,
)
from fk_engine.models.layout import (
    EdgeStyle,
    GraphLayout,
    LayoutAlgorithm,
    LayoutEdge,
    LayoutNode,
)
from fk_engine.models.schema import (
    ColumnMetadata,
    ForeignKeyMetadata,
    SchemaSnapshot,
    TableMetadata,
)
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

__all__ = [
    "AffectedTableEntry",
    "BlockingConstraint",
    "BreakingSuggestion",
    "CascadePath",
    "CascadeSimulationResult",
    "CircularReference",
    "ColumnInfo",
    "ColumnMetadata",
    "Cycle",
    "CycleCheck",
    "CycleReport",
    "DependencyGraph",
    "EdgeStyle",
    "FKAction",
    "ForeignKeyEdge",
    "ForeignKeyMetadata",
    "GraphLayout",
    "LayoutAlgorithm",
    "LayoutEdge",
    "LayoutNode",
    "RowFilter",
    "SchemaSnapshot",
    "Severity",
    "SimulatedAction",
    "SimulationWarning",
    "TableMetadata",
    "TableNode",
    "WarningType",
]
