"""Force-directed layout.

Tables start on a circle (with a little seeded jitter), then a simple
physical simulation runs: every pair of nearby tables repels, every foreign
key pulls its two tables together, and velocities are damped each step.  The
simulation stops once the largest per-step displacement falls below
``settings.force_convergence_threshold`` or after
``settings.force_iterations`` steps.

The same seed always yields the same positions.  Tables with no foreign key
to another table take no part in the simulation and are lined up in a row
below the drawing.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence

from fk_engine.config import Settings
from fk_engine.errors import ComputationLimitExceeded
from fk_engine.layout.styles import build_layout_edges, node_size
from fk_engine.models.graph import ForeignKeyEdge, TableNode
from fk_engine.models.layout import GraphLayout, LayoutAlgorithm, LayoutNode

logger = logging.getLogger(__name__)

REPULSION = 5000.0
ATTRACTION = 0.01
DAMPING = 0.85
MIN_DISTANCE = 200.0
MIN_RADIUS = 300.0
RADIUS_PER_NODE = 30.0
JITTER = 5.0
MARGIN = 50.0


def _initial_positions(names: Sequence[str], seed: int) -> dict[str, list[float]]:
    rng = random.Random(seed)
    radius = max(MIN_RADIUS, len(names) * RADIUS_PER_NODE)
    step = 2 * math.pi / len(names)
    positions: dict[str, list[float]] = {}
    for index, name in enumerate(names):
        angle = index * step
        positions[name] = [
            radius + radius * math.cos(angle) + rng.uniform(-JITTER, JITTER),
            radius + radius * math.sin(angle) + rng.uniform(-JITTER, JITTER),
        ]
    return positions


def _step(
    names: Sequence[str],
    pairs: Sequence[tuple[str, str]],
    positions: dict[str, list[float]],
    velocities: dict[str, list[float]],
) -> float:
    """Advance the simulation by one step; return the largest displacement."""
    forces = {name: [0.0, 0.0] for name in names}

    for i, first in enumerate(names):
        for second in names[i + 1:]:
            dx = positions[second][0] - positions[first][0]
            dy = positions[second][1] - positions[first][1]
            dist_sq = dx * dx + dy * dy
            dist = math.sqrt(dist_sq) or 1.0
            if dist >= MIN_DISTANCE * 2:
                continue
            force = REPULSION / (dist_sq or 1.0)
            fx, fy = dx / dist * force, dy / dist * force
            forces[first][0] -= fx
            forces[first][1] -= fy
            forces[second][0] += fx
            forces[second][1] += fy

    for source, target in pairs:
        dx = positions[target][0] - positions[source][0]
        dy = positions[target][1] - positions[source][1]
        dist = math.sqrt(dx * dx + dy * dy) or 1.0
        force = ATTRACTION * dist
        fx, fy = dx / dist * force, dy / dist * force
        forces[source][0] += fx
        forces[source][1] += fy
        forces[target][0] -= fx
        forces[target][1] -= fy

    largest = 0.0
    for name in names:
        velocity = velocities[name]
        velocity[0] = (velocity[0] + forces[name][0]) * DAMPING
        velocity[1] = (velocity[1] + forces[name][1]) * DAMPING
        positions[name][0] += velocity[0]
        positions[name][1] += velocity[1]
        largest = max(largest, math.hypot(velocity[0], velocity[1]))
    return largest


def force_directed_layout(
    nodes: Sequence[TableNode],
    edges: Sequence[ForeignKeyEdge],
    settings: Settings,
    *,
    strict: bool = False,
) -> GraphLayout:
    """Position *nodes* with a seeded force simulation.

    Raises
    ------
    ComputationLimitExceeded
        With ``strict=True``, when the iteration cap is reached before the
        layout converges.  The unconverged layout is attached as
        ``partial``.
    """
    tables = {node.name: node for node in nodes}
    pairs = sorted(
        {(e.source_table, e.target_table) for e in edges if not e.is_self_reference}
    )
    linked = {name for pair in pairs for name in pair}
    connected = sorted(name for name in tables if name in linked)
    isolated = sorted(name for name in tables if name not in linked)

    positions: dict[str, list[float]] = {}
    iterations = 0
    converged = True
    if connected:
        positions = _initial_positions(connected, settings.force_seed)
        velocities = {name: [0.0, 0.0] for name in connected}
        converged = False
        while iterations < settings.force_iterations:
            iterations += 1
            if _step(connected, pairs, positions, velocities) < settings.force_convergence_threshold:
                converged = True
                break

        min_x = min(p[0] for p in positions.values())
        min_y = min(p[1] for p in positions.values())
        for point in positions.values():
            point[0] -= min_x - MARGIN
            point[1] -= min_y - MARGIN

    sizes = {name: node_size(table, settings) for name, table in tables.items()}
    if isolated:
        row_y = MARGIN
        if positions:
            row_y = max(positions[n][1] + sizes[n][1] for n in connected) + settings.layer_spacing
        x = MARGIN
        for name in isolated:
            positions[name] = [x, row_y]
            x += sizes[name][0] + settings.node_spacing

    placed = tuple(
        LayoutNode(
            id=name,
            x=round(positions[name][0], 3),
            y=round(positions[name][1], 3),
            width=sizes[name][0],
            height=sizes[name][1],
            row_count=tables[name].row_count,
            column_count=len(tables[name].columns),
        )
        for name in sorted(tables)
    )
    layout = GraphLayout(
        algorithm=LayoutAlgorithm.FORCE_DIRECTED,
        nodes=placed,
        edges=build_layout_edges(edges),
        iterations=iterations,
        converged=converged,
        truncated=not converged,
    )

    if not converged:
        message = f"Force-directed layout did not converge within {settings.force_iterations} iterations"
        if strict:
            raise ComputationLimitExceeded("force_iterations", message, partial=layout)
        logger.warning(message)
    return layout
