"""Severity policies for cycles and cascade warnings.

Every rule here is a pure function of a few booleans or counts so it can be
tested without building a graph.  The cycle policy is an explicit lookup
table over ``(has_cascade, has_restrict, has_nullifying)``.
"""

from __future__ import annotations

from collections.abc import Iterable

from fk_engine.models.cycle import Severity
from fk_engine.models.graph import FKAction

# (has_cascade, has_restrict, has_nullifying) -> severity
CYCLE_SEVERITY_POLICY: dict[tuple[bool, bool, bool], Severity] = {
    (True, False, False): Severity.HIGH,
    (True, False, True): Severity.HIGH,
    (True, True, False): Severity.MEDIUM,
    (True, True, True): Severity.MEDIUM,
    (False, False, True): Severity.MEDIUM,
    (False, True, True): Severity.MEDIUM,
    (False, False, False): Severity.LOW,
    (False, True, False): Severity.LOW,
}

DEEP_CASCADE_MEDIUM_DEPTH = 2
DEEP_CASCADE_HIGH_DEPTH = 5


def classify_cycle_severity(has_cascade: bool, has_restrict: bool, has_nullifying: bool) -> Severity:
    """Look up the severity of a cycle from the actions along it.

    Parameters
    ----------
    has_cascade:
        At least one hop is ``ON DELETE CASCADE``.
    has_restrict:
        At least one hop is ``ON DELETE RESTRICT``.
    has_nullifying:
        At least one hop is ``SET NULL`` or ``SET DEFAULT``.
    """
    return CYCLE_SEVERITY_POLICY[(bool(has_cascade), bool(has_restrict), bool(has_nullifying))]


def cycle_severity_for_actions(actions: Iterable[FKAction]) -> Severity:
    """Severity of a cycle whose hops carry *actions*."""
    seen = set(actions)
    return classify_cycle_severity(
        has_cascade=FKAction.CASCADE in seen,
        has_restrict=FKAction.RESTRICT in seen,
        has_nullifying=any(a.nullifies for a in seen),
    )


def blast_radius_severity(affected_rows: int, threshold: int) -> Severity:
    """``> threshold`` is high, ``> threshold // 10`` is medium, else low."""
    if affected_rows > threshold:
        return Severity.HIGH
    if affected_rows > threshold // 10:
        return Severity.MEDIUM
    return Severity.LOW


def cascade_depth_severity(depth: int) -> Severity | None:
    """Severity of a cascade reaching *depth*, or ``None`` if shallow."""
    if depth > DEEP_CASCADE_HIGH_DEPTH:
        return Severity.HIGH
    if depth > DEEP_CASCADE_MEDIUM_DEPTH:
        return Severity.MEDIUM
    return None
