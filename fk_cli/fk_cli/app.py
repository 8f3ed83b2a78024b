"""fkgraph CLI application -- Typer-based developer interface.

Inspects the foreign-key graph of a SQLite database (or a JSON schema
snapshot): lists tables, detects circular dependencies, simulates cascading
deletes, computes graph layouts and checks prospective foreign keys.
Human-readable output goes to *stderr* via Rich; ``--json`` writes
machine-readable results to *stdout* so that pipelines can compose cleanly.

Exit codes: 0 success, 3 invalid input, 4 a computation limit was hit under
``--strict``.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from fk_cli.display import (
    display_cycle_check,
    display_cycles,
    display_layout,
    display_simulation,
    display_tables,
)
from fk_engine.analysis import AnalysisPass, DependencyAnalyzer
from fk_engine.config import Settings, load_settings
from fk_engine.errors import ComputationLimitExceeded, FKEngineError
from fk_engine.metadata.provider import MetadataProvider
from fk_engine.metadata.sqlite import SQLiteMetadataProvider
from fk_engine.metadata.static import StaticMetadataProvider
from fk_engine.models.layout import LayoutAlgorithm
from fk_engine.telemetry.log_format import configure_logging

T = TypeVar("T")

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="fkgraph",
    help="fkgraph - foreign-key dependency analysis for SQLite databases",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_verbose: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log engine activity at DEBUG level.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _verbose  # noqa: PLW0603
    _json_output = json_mode
    _verbose = verbose


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(**overrides: Any) -> Settings:
    """Load settings, apply non-None overrides and configure logging."""
    try:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as exc:
        console.print(f"[red]Invalid configuration: {exc}[/red]")
        raise typer.Exit(code=3) from exc
    configure_logging(settings, level="DEBUG" if _verbose else None)
    return settings


def _provider_for(source: Path, settings: Settings) -> MetadataProvider:
    """A ``.json`` source is a schema snapshot; anything else a SQLite file."""
    if source.suffix.lower() == ".json":
        return StaticMetadataProvider.from_file(source)
    return SQLiteMetadataProvider.from_path(source, settings)


def _run(
    source: Path,
    settings: Settings,
    action: Callable[[AnalysisPass], Awaitable[T]],
) -> T:
    """Open an analysis pass on *source*, run *action* and map engine errors to exit codes."""

    async def _main() -> T:
        provider = _provider_for(source, settings)
        try:
            analysis = await DependencyAnalyzer(provider, settings).open_pass()
            return await action(analysis)
        finally:
            if isinstance(provider, SQLiteMetadataProvider):
                await provider.close()

    try:
        return asyncio.run(_main())
    except ComputationLimitExceeded as exc:
        console.print(f"[red]Limit '{exc.limit}' exceeded: {exc}[/red]")
        raise typer.Exit(code=4) from exc
    except FKEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=3) from exc


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


_SOURCE_ARGUMENT = typer.Argument(
    ...,
    help="SQLite database file, or a .json schema snapshot.",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


# ---------------------------------------------------------------------------
# tables
# ---------------------------------------------------------------------------


@app.command()
def tables(source: Path = _SOURCE_ARGUMENT) -> None:
    """List tables with row counts and foreign-key neighbours."""
    settings = _settings()

    async def _action(analysis: AnalysisPass) -> None:
        graph = analysis.graph
        if _json_output:
            _write_json(
                {
                    "database": analysis.snapshot.database,
                    "tables": [node.model_dump(mode="json") for node in graph.nodes],
                    "foreign_keys": [edge.model_dump(mode="json") for edge in graph.edges],
                    "inconsistencies": graph.inconsistencies,
                }
            )
        else:
            display_tables(console, graph)

    _run(source, settings, _action)


# ---------------------------------------------------------------------------
# cycles
# ---------------------------------------------------------------------------


@app.command()
def cycles(
    source: Path = _SOURCE_ARGUMENT,
    suggest: bool = typer.Option(
        False,
        "--suggest",
        help="Show which constraints could be changed to break each cycle.",
    ),
    max_length: int | None = typer.Option(
        None,
        "--max-length",
        help="Longest cycle to enumerate (default from FKGRAPH_MAX_CYCLE_LENGTH).",
        min=1,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Fail with exit code 4 instead of reporting a truncated result.",
    ),
) -> None:
    """Detect circular foreign-key dependencies."""
    settings = _settings(max_cycle_length=max_length)

    async def _action(analysis: AnalysisPass) -> None:
        found = analysis.detect_cycles(strict=strict)
        suggestions = {c.path: analysis.breaking_suggestions(c) for c in found} if suggest else None

        if _json_output:
            rows = []
            for cycle in found:
                row = cycle.model_dump(mode="json")
                if suggestions is not None:
                    row["suggestions"] = [s.model_dump(mode="json") for s in suggestions[cycle.path]]
                rows.append(row)
            _write_json(rows)
        else:
            display_cycles(console, found, suggestions)

    _run(source, settings, _action)


# ---------------------------------------------------------------------------
# simulate
# ---------------------------------------------------------------------------


@app.command()
def simulate(
    source: Path = _SOURCE_ARGUMENT,
    table: str = typer.Option(
        ...,
        "--table",
        "-t",
        help="Table to delete from.",
    ),
    where: str | None = typer.Option(
        None,
        "--where",
        "-w",
        help="Filter restricting the deleted rows, e.g. \"status = 'void'\".",
    ),
    max_depth: int | None = typer.Option(
        None,
        "--max-depth",
        help="Stop following cascades after this many hops.",
        min=1,
    ),
) -> None:
    """Simulate the cascading effect of a DELETE without running it."""
    settings = _settings()

    async def _action(analysis: AnalysisPass) -> None:
        result = await analysis.simulate_delete(table, where, max_depth=max_depth)
        if _json_output:
            _write_json(result.model_dump(mode="json"))
        else:
            display_simulation(console, result)

    _run(source, settings, _action)


# ---------------------------------------------------------------------------
# layout
# ---------------------------------------------------------------------------


@app.command()
def layout(
    source: Path = _SOURCE_ARGUMENT,
    algorithm: LayoutAlgorithm = typer.Option(
        LayoutAlgorithm.HIERARCHICAL,
        "--algorithm",
        "-a",
        help="Layout algorithm.",
    ),
    cycles_only: bool = typer.Option(
        False,
        "--cycles-only",
        help="Lay out only the tables that take part in a cycle.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Fail with exit code 4 if the force-directed layout does not converge.",
    ),
) -> None:
    """Compute node positions for drawing the foreign-key graph."""
    settings = _settings()

    async def _action(analysis: AnalysisPass) -> None:
        result = analysis.layout(algorithm, cycles_only=cycles_only, strict=strict)
        if _json_output:
            _write_json(result.model_dump(mode="json"))
        else:
            display_layout(console, result)

    _run(source, settings, _action)


# ---------------------------------------------------------------------------
# check-fk
# ---------------------------------------------------------------------------


@app.command("check-fk")
def check_fk(
    source: Path = _SOURCE_ARGUMENT,
    from_table: str = typer.Option(
        ...,
        "--source",
        help="Table that would declare the new foreign key.",
    ),
    to_table: str = typer.Option(
        ...,
        "--target",
        help="Table the new foreign key would reference.",
    ),
    on_delete: str = typer.Option(
        "NO ACTION",
        "--on-delete",
        help="ON DELETE action of the new foreign key.",
    ),
) -> None:
    """Check whether adding a foreign key would create a cycle."""
    settings = _settings()

    async def _action(analysis: AnalysisPass) -> None:
        check = analysis.would_create_cycle(from_table, to_table, on_delete)
        if _json_output:
            _write_json(check.model_dump(mode="json"))
        else:
            display_cycle_check(console, from_table, to_table, check)

    _run(source, settings, _action)
