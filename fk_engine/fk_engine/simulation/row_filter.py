"""Validation of ``WHERE`` filters for simulated deletes.

A filter is a boolean SQL expression over the columns of the target table.
It is parsed with SQLGlot (SQLite dialect) by wrapping it in
``SELECT 1 FROM <table> WHERE <filter>``; anything that does not survive as
exactly that single statement is rejected before traversal begins.
"""

from __future__ import annotations

import logging
import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError

from fk_engine.errors import InputError
from fk_engine.models.graph import TableNode

logger = logging.getLogger(__name__)

_DIALECT = "sqlite"

_LEADING_WHERE = re.compile(r"^\s*where\s+", re.IGNORECASE)

# Clauses that can only appear if the filter smuggled in more than a predicate.
_FORBIDDEN_CLAUSES = ("joins", "group", "having", "order", "limit", "offset", "laterals")


def _quoted(name: str) -> str:
    return exp.to_identifier(name, quoted=True).sql(dialect=_DIALECT)


def parse_where_clause(table: TableNode, where_clause: str) -> exp.Expression:
    """Parse *where_clause* against *table* and return its condition AST.

    Parameters
    ----------
    table:
        The table the delete targets.  When it carries column metadata,
        every column the filter mentions must exist.
    where_clause:
        The predicate, with or without a leading ``WHERE`` keyword.

    Raises
    ------
    InputError
        On a syntax error, more than one statement, subqueries, clauses
        other than a predicate, columns unknown to *table*, or columns
        qualified with another table.
    """
    clause = _LEADING_WHERE.sub("", where_clause).strip()
    if not clause:
        raise InputError("Filter is empty")

    sql = f"SELECT 1 FROM {_quoted(table.name)} WHERE {clause}"
    try:
        statements = [s for s in sqlglot.parse(sql, read=_DIALECT) if s is not None]
    except ParseError as exc:
        raise InputError(f"Malformed filter '{where_clause}': {exc}") from exc

    if len(statements) != 1 or not isinstance(statements[0], exp.Select):
        raise InputError(f"Filter '{where_clause}' must be a single boolean expression")

    select = statements[0]
    where = select.args.get("where")
    if where is None or any(select.args.get(key) for key in _FORBIDDEN_CLAUSES):
        raise InputError(f"Filter '{where_clause}' must be a single boolean expression")

    condition = where.this
    if condition.find(exp.Select) is not None:
        raise InputError(f"Subqueries are not supported in filters: '{where_clause}'")

    for column in condition.find_all(exp.Column):
        qualifier = column.table
        if qualifier and qualifier.lower() != table.name.lower():
            raise InputError(
                f"Filter references table '{qualifier}'; only columns of '{table.name}' are allowed"
            )
        if table.columns and table.column(column.name) is None:
            raise InputError(f"Column '{column.name}' not found in table '{table.name}'")

    return condition


def validate_where_clause(table: TableNode, where_clause: str) -> str:
    """Validate *where_clause* and return it re-rendered in SQLite syntax."""
    normalized = parse_where_clause(table, where_clause).sql(dialect=_DIALECT)
    logger.debug("Validated filter on '%s': %s", table.name, normalized)
    return normalized


def build_count_query(table_name: str, where_clause: str | None = None) -> str:
    """Render ``SELECT COUNT(*)`` for *table_name*, optionally filtered.

    *where_clause* must already have passed :func:`validate_where_clause`;
    it is re-rendered from its AST rather than spliced in as text.
    """
    query = exp.select("COUNT(*)").from_(exp.Table(this=exp.to_identifier(table_name, quoted=True)))
    if where_clause:
        query = query.where(exp.condition(where_clause, dialect=_DIALECT))
    return query.sql(dialect=_DIALECT)


def normalize_where_clause(where_clause: str) -> str:
    """Re-render a predicate in canonical SQLite syntax without table checks."""
    clause = _LEADING_WHERE.sub("", where_clause).strip()
    try:
        return exp.condition(clause, dialect=_DIALECT).sql(dialect=_DIALECT)
    except ParseError as exc:
        raise InputError(f"Malformed filter '{where_clause}': {exc}") from exc
