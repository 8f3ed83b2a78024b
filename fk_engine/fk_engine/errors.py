"""Exception taxonomy for the dependency analysis engine.

Blocked cascades and cycles met during a simulation are *results*, not
errors; only the conditions below are raised.
"""

from __future__ import annotations

from typing import Any


class FKEngineError(Exception):
    """Base class for every error raised by :mod:`fk_engine`."""


class InputError(FKEngineError):
    """Raised when caller input cannot be resolved against the graph.

    Covers unknown tables or columns, malformed ``WHERE`` filters, and
    unrecognised foreign-key actions in schema metadata.  Messages are meant
    to be surfaced verbatim to the caller.
    """


class GraphConsistencyError(FKEngineError):
    """Raised when a foreign key references a table missing from the snapshot.

    Attributes
    ----------
    constraint_name:
        The constraint that could not be resolved.
    source_table:
        The referencing table.
    target_table:
        The referenced table that does not exist.
    """

    def __init__(self, constraint_name: str, source_table: str, target_table: str) -> None:
        self.constraint_name = constraint_name
        self.source_table = source_table
        self.target_table = target_table
        super().__init__(
            f"Foreign key '{constraint_name}' on '{source_table}' references "
            f"unknown table '{target_table}'"
        )


class ComputationLimitExceeded(FKEngineError):
    """Raised in strict mode when a safety valve stops a computation.

    Attributes
    ----------
    limit:
        Name of the limit that was hit (e.g. ``"max_cycles"``).
    partial:
        The partial result computed before the limit was reached.
    """

    def __init__(self, limit: str, message: str, partial: Any = None) -> None:
        self.limit = limit
        self.partial = partial
        super().__init__(message)
