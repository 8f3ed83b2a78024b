"""Unit tests for fk_engine.graph.cycles."""

from __future__ import annotations

import pytest

from fk_engine.config import load_settings
from fk_engine.errors import ComputationLimitExceeded, InputError
from fk_engine.graph.cycles import (
    analyze_cycles,
    canonical_rotation,
    cycle_subgraph,
    detect_cycles,
    format_cycle_path,
    get_breaking_suggestions,
    would_create_cycle,
)
from fk_engine.models.cycle import Severity
from fk_engine.models.graph import DependencyGraph, FKAction, ForeignKeyEdge, TableNode

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _edge(source: str, target: str, on_delete: FKAction = FKAction.NO_ACTION, name: str | None = None) -> ForeignKeyEdge:
    return ForeignKeyEdge(
        constraint_name=name or f"fk_{source}_{target}",
        source_table=source,
        source_columns=(f"{target}_id",),
        target_table=target,
        target_columns=("id",),
        on_delete=on_delete,
    )


def _graph(tables: list[str], edges: list[ForeignKeyEdge]) -> DependencyGraph:
    return DependencyGraph(tables=[TableNode(name=t) for t in tables], edges=edges)


def _triangle(b_action: FKAction = FKAction.NO_ACTION) -> DependencyGraph:
    """A -> B (CASCADE), B -> C, C -> A."""
    return _graph(
        ["A", "B", "C"],
        [
            _edge("A", "B", FKAction.CASCADE),
            _edge("B", "C", b_action),
            _edge("C", "A"),
        ],
    )


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


class TestPathHelpers:
    def test_canonical_rotation_starts_at_smallest(self):
        assert canonical_rotation(["c", "a", "b"]) == ("a", "b", "c")

    def test_canonical_rotation_preserves_direction(self):
        assert canonical_rotation(["b", "c", "a"]) == ("a", "b", "c")
        assert canonical_rotation(["b", "a", "c"]) == ("a", "c", "b")

    def test_canonical_rotation_empty(self):
        assert canonical_rotation([]) == ()

    def test_format_cycle_path_closes_the_loop(self):
        assert format_cycle_path(("A", "B", "C")) == "A → B → C → A"

    def test_format_self_reference(self):
        assert format_cycle_path(("employees",)) == "employees → employees"


# ---------------------------------------------------------------------------
# detect_cycles
# ---------------------------------------------------------------------------


class TestDetectCycles:
    def test_triangle_with_cascade_is_high(self):
        (cycle,) = detect_cycles(_triangle(), settings=load_settings())
        assert cycle.tables == ("A", "B", "C")
        assert cycle.path == "A → B → C → A"
        assert cycle.severity is Severity.HIGH
        assert cycle.cascade_risk is True
        assert cycle.restrict_present is False
        assert cycle.constraint_names == ("fk_A_B", "fk_B_C", "fk_C_A")
        assert cycle.edge_actions == (FKAction.CASCADE, FKAction.NO_ACTION, FKAction.NO_ACTION)
        assert "contains CASCADE operations" in cycle.message

    def test_cascade_with_restrict_is_medium(self):
        (cycle,) = detect_cycles(_triangle(FKAction.RESTRICT), settings=load_settings())
        assert cycle.severity is Severity.MEDIUM
        assert cycle.restrict_present is True
        assert "contains RESTRICT constraints" in cycle.message

    def test_acyclic_graph_has_no_cycles(self):
        graph = _graph(["a", "b", "c"], [_edge("b", "a"), _edge("c", "b")])
        assert detect_cycles(graph, settings=load_settings()) == []

    def test_self_reference_is_a_cycle(self):
        graph = _graph(["employees"], [_edge("employees", "employees", FKAction.SET_NULL)])
        (cycle,) = detect_cycles(graph, settings=load_settings())
        assert cycle.is_self_reference
        assert cycle.length == 1
        assert cycle.path == "employees → employees"
        assert cycle.severity is Severity.MEDIUM

    def test_no_action_only_is_low(self):
        graph = _graph(["a", "b"], [_edge("a", "b"), _edge("b", "a")])
        (cycle,) = detect_cycles(graph, settings=load_settings())
        assert cycle.severity is Severity.LOW

    def test_each_cycle_reported_once(self):
        graph = _graph(
            ["a", "b", "c"],
            [_edge("a", "b"), _edge("b", "a"), _edge("b", "c"), _edge("c", "b")],
        )
        cycles = detect_cycles(graph, settings=load_settings())
        assert sorted(c.tables for c in cycles) == [("a", "b"), ("b", "c")]

    def test_parallel_constraints_collapse_into_one_cycle(self):
        graph = _graph(
            ["a", "b"],
            [
                _edge("a", "b", FKAction.NO_ACTION, name="fk1"),
                _edge("a", "b", FKAction.CASCADE, name="fk2"),
                _edge("b", "a"),
            ],
        )
        (cycle,) = detect_cycles(graph, settings=load_settings())
        assert set(cycle.constraint_names) == {"fk1", "fk2", "fk_b_a"}
        assert cycle.edge_actions == (FKAction.CASCADE, FKAction.NO_ACTION)
        assert cycle.severity is Severity.HIGH

    def test_every_reported_cycle_re_walks(self):
        graph = _graph(
            ["a", "b", "c", "d"],
            [_edge("a", "b"), _edge("b", "c"), _edge("c", "a"), _edge("c", "d"), _edge("d", "a")],
        )
        for cycle in detect_cycles(graph, settings=load_settings()):
            n = len(cycle.tables)
            for i, table in enumerate(cycle.tables):
                assert graph.edges_between(table, cycle.tables[(i + 1) % n])

    def test_sorted_by_severity_then_length(self):
        graph = _graph(
            ["a", "b", "x", "y", "z"],
            [
                _edge("a", "b"),
                _edge("b", "a"),
                _edge("x", "y", FKAction.CASCADE),
                _edge("y", "z"),
                _edge("z", "x"),
            ],
        )
        cycles = detect_cycles(graph, settings=load_settings())
        assert [c.tables for c in cycles] == [("x", "y", "z"), ("a", "b")]

    def test_deterministic(self):
        graph = _triangle()
        settings = load_settings()
        assert detect_cycles(graph, settings=settings) == detect_cycles(graph, settings=settings)


class TestCycleLimits:
    def _ring(self, size: int) -> DependencyGraph:
        names = [f"t{i:02d}" for i in range(size)]
        edges = [_edge(names[i], names[(i + 1) % size]) for i in range(size)]
        return _graph(names, edges)

    def test_long_cycle_truncated(self):
        report = analyze_cycles(self._ring(5), max_length=3, max_cycles=100)
        assert report.cycles == ()
        assert report.truncated is True
        assert "5 tables" in (report.limit_reason or "")

    def test_large_component_with_only_short_cycles_is_complete(self):
        leaves = [f"leaf{i}" for i in range(4)]
        edges = [_edge("hub", leaf) for leaf in leaves] + [_edge(leaf, "hub") for leaf in leaves]
        graph = _graph(["hub", *leaves], edges)

        report = analyze_cycles(graph, max_length=3, max_cycles=100)
        assert len(report.cycles) == 4
        assert report.truncated is False
        assert report.limits == ()
        assert len(detect_cycles(graph, max_length=3, strict=True, settings=load_settings())) == 4

    def test_cycle_at_length_bound_is_found(self):
        report = analyze_cycles(self._ring(3), max_length=3, max_cycles=100)
        assert len(report.cycles) == 1
        assert report.truncated is False

    def test_max_cycles_caps_enumeration(self):
        graph = _graph(
            ["a", "b", "c", "d"],
            [_edge("a", "a"), _edge("b", "b"), _edge("c", "c"), _edge("d", "d")],
        )
        report = analyze_cycles(graph, max_length=5, max_cycles=2)
        assert len(report.cycles) == 2
        assert report.truncated is True
        assert report.limit_reason == "Stopped after 2 cycles"

    def test_lenient_mode_returns_partial(self):
        cycles = detect_cycles(self._ring(5), max_length=3, settings=load_settings())
        assert cycles == []

    def test_strict_mode_raises_with_partial(self):
        graph = _graph(["a", "b", "c"], [_edge("a", "a"), _edge("b", "b"), _edge("c", "c")])
        with pytest.raises(ComputationLimitExceeded) as exc_info:
            detect_cycles(graph, max_cycles=2, strict=True, settings=load_settings())
        assert exc_info.value.limit == "max_cycles"
        assert len(exc_info.value.partial) == 2

    def test_strict_mode_length_limit(self):
        with pytest.raises(ComputationLimitExceeded) as exc_info:
            detect_cycles(self._ring(5), max_length=3, strict=True, settings=load_settings())
        assert exc_info.value.limit == "max_cycle_length"

    def test_both_limits_are_named(self):
        ring = self._ring(5)
        graph = _graph(
            [*ring.tables, "a", "b", "c"],
            [*ring.edges, _edge("a", "a"), _edge("b", "b"), _edge("c", "c")],
        )
        report = analyze_cycles(graph, max_length=3, max_cycles=2)
        assert report.limits == ("max_cycle_length", "max_cycles")

        with pytest.raises(ComputationLimitExceeded) as exc_info:
            detect_cycles(graph, max_length=3, max_cycles=2, strict=True, settings=load_settings())
        assert exc_info.value.limit == "max_cycle_length, max_cycles"
        assert len(exc_info.value.partial) == 2

    def test_limits_default_from_settings(self):
        settings = load_settings(max_cycle_length=3)
        assert detect_cycles(self._ring(4), settings=settings) == []
        assert len(detect_cycles(self._ring(3), settings=settings)) == 1


# ---------------------------------------------------------------------------
# would_create_cycle
# ---------------------------------------------------------------------------


class TestWouldCreateCycle:
    def test_closing_edge_creates_cycle(self):
        graph = _graph(["a", "b", "c"], [_edge("a", "b"), _edge("b", "c")])
        check = would_create_cycle(graph, "c", "a", FKAction.CASCADE)
        assert check.would_create_cycle is True
        assert check.cycle is not None
        assert check.cycle.tables == ("a", "b", "c")
        assert "temp_fk_c_a" in check.cycle.constraint_names
        assert check.cycle.severity is Severity.HIGH

    def test_non_closing_edge(self):
        graph = _graph(["a", "b", "c"], [_edge("a", "b")])
        check = would_create_cycle(graph, "a", "c")
        assert check.would_create_cycle is False
        assert check.cycle is None

    def test_self_reference(self):
        graph = _graph(["a"], [])
        check = would_create_cycle(graph, "a", "a", "SET NULL")
        assert check.would_create_cycle is True
        assert check.cycle is not None
        assert check.cycle.is_self_reference

    def test_graph_is_not_modified(self):
        graph = _graph(["a", "b"], [_edge("a", "b")])
        would_create_cycle(graph, "b", "a")
        assert len(graph.edges) == 1

    def test_unknown_table(self):
        graph = _graph(["a"], [])
        with pytest.raises(InputError, match="ghost"):
            would_create_cycle(graph, "a", "ghost")


# ---------------------------------------------------------------------------
# Breaking suggestions
# ---------------------------------------------------------------------------


class TestBreakingSuggestions:
    def test_cascade_first_then_no_action(self):
        graph = _graph(
            ["a", "b", "c"],
            [
                _edge("a", "b"),
                _edge("b", "c", FKAction.CASCADE),
                _edge("c", "a", FKAction.RESTRICT),
            ],
        )
        (cycle,) = detect_cycles(graph, settings=load_settings())
        suggestions = get_breaking_suggestions(cycle, graph)
        assert [s.constraint_name for s in suggestions] == ["fk_b_c", "fk_a_b"]
        assert suggestions[0].current_action is FKAction.CASCADE
        assert suggestions[0].suggestion == "Change ON DELETE to RESTRICT or SET NULL"
        assert suggestions[1].suggestion == "Consider removing this constraint or changing to SET NULL"

    def test_restrict_and_set_null_not_suggested(self):
        graph = _graph(["a", "b"], [_edge("a", "b", FKAction.RESTRICT), _edge("b", "a", FKAction.SET_NULL)])
        (cycle,) = detect_cycles(graph, settings=load_settings())
        assert get_breaking_suggestions(cycle, graph) == []


class TestCycleSubgraph:
    def test_only_cycle_tables_kept(self):
        graph = _graph(["a", "b", "c"], [_edge("a", "b"), _edge("b", "a"), _edge("c", "a")])
        cycles = detect_cycles(graph, settings=load_settings())
        sub = cycle_subgraph(graph, cycles)
        assert sorted(sub.tables) == ["a", "b"]
        assert len(sub.edges) == 2
