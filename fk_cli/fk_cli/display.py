"""Rich output formatting for the fkgraph CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from fk_engine.models.cycle import BreakingSuggestion, Cycle, CycleCheck
    from fk_engine.models.graph import DependencyGraph
    from fk_engine.models.layout import GraphLayout
    from fk_engine.models.simulation import CascadeSimulationResult


# ---------------------------------------------------------------------------
# Colour mapping
# ---------------------------------------------------------------------------

_SEVERITY_COLOURS: dict[str, str] = {
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}

_ACTION_COLOURS: dict[str, str] = {
    "DELETE": "bold red",
    "CASCADE": "yellow",
    "RESTRICT": "red",
    "NO ACTION": "magenta",
    "SET NULL": "blue",
    "SET DEFAULT": "blue",
}


def _coloured_severity(severity: str) -> str:
    """Return a Rich markup string with the severity colour-coded."""
    colour = _SEVERITY_COLOURS.get(severity, "white")
    return f"[{colour}]{severity.upper()}[/{colour}]"


def _coloured_action(action: str) -> str:
    colour = _ACTION_COLOURS.get(action, "white")
    return f"[{colour}]{action}[/{colour}]"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def display_tables(console: Console, graph: DependencyGraph) -> None:
    """Render every table with its size and foreign-key fan-in/fan-out.

    Parameters
    ----------
    console:
        Rich console to write to.
    graph:
        The dependency graph of the inspected database.
    """
    if len(graph) == 0:
        console.print("[dim]No tables found.[/dim]")
        return

    table = Table(title=f"Tables ({len(graph)})", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Name", style="bold")
    table.add_column("Rows", justify="right")
    table.add_column("Columns", justify="right")
    table.add_column("References")
    table.add_column("Referenced By")

    for name in sorted(graph.tables):
        node = graph.table(name)
        references = sorted({e.target_table for e in graph.outgoing(name)})
        referenced_by = sorted({e.source_table for e in graph.incoming(name)})
        table.add_row(
            name,
            str(node.row_count),
            str(len(node.columns)),
            ", ".join(references) or "-",
            ", ".join(referenced_by) or "-",
        )

    console.print(table)

    for message in graph.inconsistencies:
        console.print(f"[yellow]Warning:[/yellow] {message}")


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


def display_cycles(
    console: Console,
    cycles: list[Cycle],
    suggestions: dict[str, list[BreakingSuggestion]] | None = None,
) -> None:
    """Render detected cycles, optionally with breaking suggestions.

    Parameters
    ----------
    console:
        Rich console to write to.
    cycles:
        Cycles as returned by ``detect_cycles``.
    suggestions:
        Optional mapping of cycle path to suggested constraint changes.
    """
    if not cycles:
        console.print("[green]No circular dependencies found.[/green]")
        return

    table = Table(title=f"Circular Dependencies ({len(cycles)})", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Path", style="bold")
    table.add_column("Severity")
    table.add_column("Cascade")
    table.add_column("Restrict")
    table.add_column("Constraints")

    for index, cycle in enumerate(cycles, start=1):
        table.add_row(
            str(index),
            cycle.path,
            _coloured_severity(cycle.severity.value),
            "[red]yes[/red]" if cycle.cascade_risk else "no",
            "yes" if cycle.restrict_present else "no",
            "\n".join(cycle.constraint_names),
        )

    console.print(table)

    if suggestions:
        tree = Tree("[bold]Breaking suggestions[/bold]", guide_style="dim")
        for path, items in suggestions.items():
            if not items:
                continue
            branch = tree.add(f"[bold]{path}[/bold]")
            for item in items:
                branch.add(
                    f"{item.source_table} -> {item.target_table} "
                    f"([cyan]{item.constraint_name}[/cyan], {_coloured_action(item.current_action.value)}): "
                    f"{item.suggestion}"
                )
        console.print(Panel(tree, border_style="yellow"))

    high = sum(1 for c in cycles if c.severity.value == "high")
    console.print(f"[bold]{len(cycles)}[/bold] cycle(s), [bold red]{high}[/bold red] high severity")


def display_cycle_check(console: Console, source: str, target: str, check: CycleCheck) -> None:
    """Render the outcome of a prospective foreign-key check."""
    if not check.would_create_cycle or check.cycle is None:
        console.print(f"[green]Adding {source} -> {target} does not create a cycle.[/green]")
        return

    console.print(
        Panel(
            f"{check.cycle.path}\n\nSeverity: {_coloured_severity(check.cycle.severity.value)}",
            title=f"Adding {source} -> {target} creates a cycle",
            border_style="red",
        )
    )


# ---------------------------------------------------------------------------
# Cascade simulation
# ---------------------------------------------------------------------------


def display_simulation(console: Console, result: CascadeSimulationResult) -> None:
    """Render the affected tables, blocking constraints and warnings of a simulation.

    Parameters
    ----------
    console:
        Rich console to write to.
    result:
        The simulation to display.
    """
    header = f"[bold]DELETE FROM {result.target_table}[/bold]"
    if result.where_clause:
        header += f" WHERE {result.where_clause}"
    status = "[red]BLOCKED[/red]" if result.blocked else "[green]would succeed[/green]"
    summary = (
        f"{header}\n"
        f"Status: {status}\n"
        f"Rows deleted: [bold]{result.total_affected_rows}[/bold]"
        f" (effective: {result.effective_deleted_rows})\n"
        f"Rows rewritten: {result.total_nullified_rows}\n"
        f"Max depth: {result.max_depth}"
    )
    if result.truncated:
        summary += "\n[yellow]Traversal stopped at the depth limit; results are partial.[/yellow]"
    console.print(Panel(summary, title="Cascade Simulation", border_style="cyan"))

    table = Table(title="Affected Tables", show_lines=False)
    table.add_column("Table", style="bold")
    table.add_column("Action")
    table.add_column("Depth", justify="right")
    table.add_column("Rows Before", justify="right")
    table.add_column("Rows After", justify="right")
    table.add_column("Affected", justify="right")
    table.add_column("Via")
    for entry in result.affected_tables:
        table.add_row(
            entry.table_name,
            _coloured_action(entry.action.value),
            str(entry.depth),
            str(entry.rows_before),
            str(entry.rows_after),
            str(entry.affected_rows),
            entry.via_constraint or "-",
        )
    console.print(table)

    for constraint in result.constraints:
        console.print(f"[red]Blocked:[/red] {constraint.message}")
    for circular in result.circular_dependencies:
        console.print(f"[magenta]Circular:[/magenta] {circular.message}")
    for warning in result.warnings:
        console.print(f"{_coloured_severity(warning.severity.value)} {warning.type.value}: {warning.message}")


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def display_layout(console: Console, layout: GraphLayout) -> None:
    """Render node positions of a computed layout."""
    if not layout.nodes:
        console.print("[dim]Nothing to lay out.[/dim]")
        return

    table = Table(title=f"{layout.algorithm.value} layout ({len(layout.nodes)} nodes)")
    table.add_column("Table", style="bold")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Width", justify="right")
    table.add_column("Height", justify="right")
    table.add_column("Layer", justify="right")
    for node in layout.nodes:
        table.add_row(
            node.id,
            f"{node.x:.1f}",
            f"{node.y:.1f}",
            f"{node.width:.0f}",
            f"{node.height:.0f}",
            "-" if node.layer is None else str(node.layer),
        )
    console.print(table)

    if layout.broken_edges:
        console.print(f"[dim]Ignored for ranking: {', '.join(layout.broken_edges)}[/dim]")
    if not layout.converged:
        console.print(f"[yellow]Layout did not converge after {layout.iterations} iterations.[/yellow]")
