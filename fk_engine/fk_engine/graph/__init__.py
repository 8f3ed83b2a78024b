"""Dependency graph construction, cycle detection and severity policies."""

from fk_engine.graph.builder import (
    build_dependency_graph,
    get_referenced_tables,
    get_referencing_tables,
    synthesize_constraint_name,
)
from fk_engine.graph.cycles import (
    analyze_cycles,
    canonical_rotation,
    cycle_subgraph,
    detect_cycles,
    format_cycle_path,
    get_breaking_suggestions,
    resolve_cycle_report,
    would_create_cycle,
)
from fk_engine.graph.severity import (
    blast_radius_severity,
    cascade_depth_severity,
    classify_cycle_severity,
    cycle_severity_for_actions,
)

__all__ = [
    # Construction
    "build_dependency_graph",
    "get_referenced_tables",
    "get_referencing_tables",
    "synthesize_constraint_name",
    # Cycles
    "analyze_cycles",
    "canonical_rotation",
    "cycle_subgraph",
    "detect_cycles",
    "format_cycle_path",
    "get_breaking_suggestions",
    "resolve_cycle_report",
    "would_create_cycle",
    # Severity
    "blast_radius_severity",
    "cascade_depth_severity",
    "classify_cycle_severity",
    "cycle_severity_for_actions",
]
