"""Query stream types and statement helpers shared by the gateway and pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from sqlglot import exp, parse
from sqlglot.dialects.postgres import Postgres
from sqlglot.errors import ParseError, TokenError

from .models import TableEntry

DIALECT = "postgres"

_ROW_RETURNING_HEADS = {"select", "with", "show", "values", "table", "explain"}

# PostgreSQL reserved key words (Appendix C); a table named after one must be quoted.
_RESERVED_WORDS = frozenset(
    """
    all analyse analyze and any array as asc asymmetric authorization binary both case cast
    check collate collation column concurrently constraint create cross current_catalog
    current_date current_role current_schema current_time current_timestamp current_user
    default deferrable desc distinct do else end except false fetch for foreign freeze from
    full grant group having ilike in initially inner intersect into is isnull join lateral
    leading left like limit localtime localtimestamp natural not notnull null offset on only
    or order outer overlaps placing primary references returning right select session_user
    similar some symmetric system_user table tablesample then to trailing true union unique
    user using variadic verbose when where window with
    """.split()
)
_PLAIN_IDENTIFIER = re.compile(r"[a-z_][a-z0-9_$]*")


class QueryExecutionError(RuntimeError):
    """Raised when a query fails to execute."""


@dataclass(frozen=True, slots=True)
class ColumnHeaders:
    """First item of every query stream."""

    names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class CommandTag:
    """Server status for statements that produce no rows (e.g. ``INSERT 0 1``)."""

    status: str


Row = tuple[object, ...]
StreamItem = Union[ColumnHeaders, Row, CommandTag]


def prepare_statement(sql: str) -> str:
    """Strip ``sql`` and make sure it holds exactly one statement."""

    statement = sql.strip()
    if not statement:
        raise QueryExecutionError("Provide SQL to execute.")
    try:
        expressions = _statements(statement)
    except (ParseError, TokenError):
        # Let the server report syntax it does not accept.
        return statement
    if len(expressions) > 1:
        raise QueryExecutionError("Only one statement can run at a time.")
    return statement


def returns_rows(statement: str) -> bool:
    """Whether ``statement`` produces a result set worth streaming."""

    token = statement.lstrip().split(None, 1)
    if not token:
        return False
    head = token[0].lower()
    try:
        expressions = _statements(statement)
    except (ParseError, TokenError):
        expressions = []
    if len(expressions) != 1 or isinstance(expressions[0], exp.Command):
        return head in _ROW_RETURNING_HEADS
    expr = expressions[0]
    if isinstance(expr, (exp.Query, exp.Values)) or expr.args.get("returning") is not None:
        return True
    # Data-modifying CTEs ("with ... delete") parse as the DML they wrap.
    return head in _ROW_RETURNING_HEADS and head != "with"


def default_select(table: TableEntry) -> str:
    """Convenience statement pre-filled when a table is picked."""

    name = _quote(table.name)
    if table.schema and table.schema != "public":
        name = f"{_quote(table.schema)}.{name}"
    return f"select * from {name}"


def format_cell(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    return str(value)


def _statements(sql: str) -> list[exp.Expression]:
    # A trailing ";" (possibly carrying a comment) parses as its own empty Semicolon node.
    return [
        expr
        for expr in parse(sql, read=DIALECT)
        if expr is not None and not isinstance(expr, exp.Semicolon)
    ]


def _quote(identifier: str) -> str:
    plain = (
        _PLAIN_IDENTIFIER.fullmatch(identifier) is not None
        and identifier not in _RESERVED_WORDS
        and identifier.upper() not in Postgres.Tokenizer.KEYWORDS
    )
    return exp.to_identifier(identifier, quoted=not plain).sql(dialect=DIALECT)


__all__ = [
    "ColumnHeaders",
    "CommandTag",
    "DIALECT",
    "QueryExecutionError",
    "Row",
    "StreamItem",
    "default_select",
    "format_cell",
    "prepare_statement",
    "returns_rows",
]
