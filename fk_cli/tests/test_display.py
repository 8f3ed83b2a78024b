"""Tests for fk_cli/display.py -- Rich output formatting.

Output is captured via a Console writing to a StringIO buffer rather than
stderr, with colour disabled so assertions can match plain text.
"""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from fk_cli.display import (
    _SEVERITY_COLOURS,
    _coloured_severity,
    display_cycle_check,
    display_cycles,
    display_layout,
    display_simulation,
    display_tables,
)
from fk_engine.config import load_settings
from fk_engine.graph.cycles import detect_cycles, get_breaking_suggestions, would_create_cycle
from fk_engine.layout.engine import compute_graph_layout
from fk_engine.models.graph import DependencyGraph, FKAction, ForeignKeyEdge, TableNode
from fk_engine.models.layout import GraphLayout, LayoutAlgorithm, LayoutNode
from fk_engine.simulation.cascade import simulate_cascade

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _capture_console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    console = Console(file=buf, no_color=True, highlight=False, width=160)
    return console, buf


def _graph() -> DependencyGraph:
    """orders <-> customers cycle plus a RESTRICT child."""
    return DependencyGraph(
        tables=[
            TableNode(name="customers", row_count=4),
            TableNode(name="orders", row_count=10),
            TableNode(name="invoices", row_count=8),
        ],
        edges=[
            ForeignKeyEdge(
                constraint_name="fk_orders_customer",
                source_table="orders",
                target_table="customers",
                on_delete=FKAction.CASCADE,
            ),
            ForeignKeyEdge(
                constraint_name="fk_customers_last_order",
                source_table="customers",
                target_table="orders",
            ),
            ForeignKeyEdge(
                constraint_name="fk_invoices_order",
                source_table="invoices",
                target_table="orders",
                on_delete=FKAction.RESTRICT,
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------


class TestColouredSeverity:
    def test_high_is_red(self):
        assert _coloured_severity("high") == "[red]HIGH[/red]"

    def test_unknown_uses_white(self):
        assert _coloured_severity("weird") == "[white]WEIRD[/white]"

    @pytest.mark.parametrize("severity", ["low", "medium", "high"])
    def test_all_severities_mapped(self, severity):
        assert severity in _SEVERITY_COLOURS


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TestDisplayTables:
    def test_lists_tables_and_neighbours(self):
        console, buf = _capture_console()
        display_tables(console, _graph())
        output = buf.getvalue()
        assert "Tables (3)" in output
        assert "invoices" in output
        assert "customers, invoices" in output

    def test_empty_graph(self):
        console, buf = _capture_console()
        display_tables(console, DependencyGraph(tables=[]))
        assert "No tables found." in buf.getvalue()

    def test_inconsistencies_listed(self):
        console, buf = _capture_console()
        graph = DependencyGraph(tables=[TableNode(name="a")], inconsistencies=["something odd"])
        display_tables(console, graph)
        assert "Warning: something odd" in buf.getvalue()


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestDisplayCycles:
    def test_renders_cycles_and_footer(self):
        graph = _graph()
        cycles = detect_cycles(graph, settings=load_settings())
        console, buf = _capture_console()
        display_cycles(console, cycles)
        output = buf.getvalue()
        assert "Circular Dependencies (1)" in output
        assert "customers → orders → customers" in output
        assert "HIGH" in output
        assert "1 cycle(s), 1 high severity" in output

    def test_renders_suggestions(self):
        graph = _graph()
        cycles = detect_cycles(graph, settings=load_settings())
        suggestions = {c.path: get_breaking_suggestions(c, graph) for c in cycles}
        console, buf = _capture_console()
        display_cycles(console, cycles, suggestions)
        output = buf.getvalue()
        assert "Breaking suggestions" in output
        assert "fk_orders_customer" in output
        assert "Change ON DELETE to RESTRICT or SET NULL" in output

    def test_no_cycles(self):
        console, buf = _capture_console()
        display_cycles(console, [])
        assert "No circular dependencies found." in buf.getvalue()

    def test_cycle_check_positive(self):
        graph = DependencyGraph(
            tables=[TableNode(name="a"), TableNode(name="b")],
            edges=[ForeignKeyEdge(constraint_name="fk", source_table="a", target_table="b")],
        )
        console, buf = _capture_console()
        display_cycle_check(console, "b", "a", would_create_cycle(graph, "b", "a"))
        assert "Adding b -> a creates a cycle" in buf.getvalue()

    def test_cycle_check_negative(self):
        graph = DependencyGraph(tables=[TableNode(name="a"), TableNode(name="b")])
        console, buf = _capture_console()
        display_cycle_check(console, "a", "b", would_create_cycle(graph, "a", "b"))
        assert "Adding a -> b does not create a cycle." in buf.getvalue()


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


class TestDisplaySimulation:
    def test_blocked_simulation(self):
        result = simulate_cascade(_graph(), "customers", settings=load_settings())
        console, buf = _capture_console()
        display_simulation(console, result)
        output = buf.getvalue()
        assert "Cascade Simulation" in output
        assert "DELETE FROM customers" in output
        assert "BLOCKED" in output
        assert "Blocked:" in output
        assert "fk_invoices_order" in output

    def test_successful_simulation(self):
        result = simulate_cascade(_graph(), "invoices", settings=load_settings())
        console, buf = _capture_console()
        display_simulation(console, result)
        assert "would succeed" in buf.getvalue()


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestDisplayLayout:
    def test_renders_nodes(self):
        layout = compute_graph_layout(_graph(), LayoutAlgorithm.HIERARCHICAL, settings=load_settings())
        console, buf = _capture_console()
        display_layout(console, layout)
        output = buf.getvalue()
        assert "hierarchical layout (3 nodes)" in output
        assert "Ignored for ranking" in output

    def test_empty_layout(self):
        console, buf = _capture_console()
        display_layout(console, GraphLayout(algorithm=LayoutAlgorithm.FORCE_DIRECTED))
        assert "Nothing to lay out." in buf.getvalue()

    def test_not_converged(self):
        layout = GraphLayout(
            algorithm=LayoutAlgorithm.FORCE_DIRECTED,
            nodes=(LayoutNode(id="a", x=50, y=50, width=250, height=150),),
            iterations=5,
            converged=False,
        )
        console, buf = _capture_console()
        display_layout(console, layout)
        assert "did not converge after 5 iterations" in buf.getvalue()
