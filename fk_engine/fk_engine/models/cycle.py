"""Cycle detection result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fk_engine.models.graph import FKAction


class Severity(str, Enum):
    """Three-level risk scale shared by cycles and simulation warnings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return ["low", "medium", "high"].index(self.value)


class Cycle(BaseModel):
    """An elementary cycle of foreign keys.

    ``tables`` is in canonical rotation (starting at the lexicographically
    smallest name) and the last table references the first.
    """

    model_config = ConfigDict(frozen=True)

    tables: tuple[str, ...] = Field(..., min_length=1)
    path: str = Field(..., description="Human-readable path, e.g. 'a → b → a'.")
    severity: Severity
    cascade_risk: bool = Field(..., description="At least one hop is ON DELETE CASCADE.")
    restrict_present: bool = Field(..., description="At least one hop is ON DELETE RESTRICT.")
    constraint_names: tuple[str, ...] = ()
    edge_actions: tuple[FKAction, ...] = Field(
        default=(),
        description="ON DELETE action of each hop, aligned with tables (hop i: tables[i] -> tables[i+1]).",
    )
    message: str = ""

    @property
    def length(self) -> int:
        return len(self.tables)

    @property
    def is_self_reference(self) -> bool:
        return len(self.tables) == 1


class CycleReport(BaseModel):
    """All cycles found in a graph plus safety-valve bookkeeping."""

    model_config = ConfigDict(frozen=True)

    cycles: tuple[Cycle, ...] = ()
    truncated: bool = Field(default=False, description="A limit stopped enumeration early.")
    limits: tuple[str, ...] = Field(
        default=(),
        description="Names of the settings that truncated enumeration (max_cycle_length, max_cycles).",
    )
    limit_reason: str | None = None

    @property
    def high_severity_count(self) -> int:
        return sum(1 for c in self.cycles if c.severity == Severity.HIGH)


class BreakingSuggestion(BaseModel):
    """A constraint that could be changed to break a cycle."""

    model_config = ConfigDict(frozen=True)

    constraint_name: str
    source_table: str
    target_table: str
    current_action: FKAction
    suggestion: str
    reason: str


class CycleCheck(BaseModel):
    """Outcome of checking whether a prospective foreign key closes a cycle."""

    model_config = ConfigDict(frozen=True)

    would_create_cycle: bool
    cycle: Cycle | None = None
