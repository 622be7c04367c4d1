"""Boolean predicate trees.

Conditions are small immutable nodes (leaf comparisons plus AND/OR/NOT) that the query layer
composes and `compile_condition` renders into a parameterized SQL fragment. Column names are
validated against an identifier pattern; values always become bound parameters.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal

from src.sql.errors import SQLBuilderError

Operator = Literal["=", "!=", "<", "<=", ">", ">="]

_SQL_OPERATORS: dict[Operator, str] = {
    "=": "=",
    "!=": "<>",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
}

_PY_OPERATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]*(\.[a-z_][a-z0-9_]*)?$")
_TABLE_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


@dataclass(frozen=True)
class Const:
    """A literal TRUE or FALSE."""

    value: bool


@dataclass(frozen=True)
class Compare:
    """`column <op> value`."""

    column: str
    op: Operator
    value: Any


@dataclass(frozen=True)
class InSet:
    """`column IN (...)`, or `NOT IN` when negated."""

    column: str
    values: tuple[Any, ...]
    negated: bool = False


@dataclass(frozen=True)
class InSubquery:
    """`column IN (SELECT select_column FROM table WHERE where)`, or `NOT IN` when negated.

    A semi-join: the outer row matches at most once, however many inner rows match.
    """

    column: str
    select_column: str
    table: str
    where: Condition = Const(True)
    negated: bool = False


@dataclass(frozen=True)
class IsNull:
    """`column IS NULL`, or `IS NOT NULL` when negated."""

    column: str
    negated: bool = False


@dataclass(frozen=True)
class And:
    children: tuple[Condition, ...]


@dataclass(frozen=True)
class Or:
    children: tuple[Condition, ...]


@dataclass(frozen=True)
class Not:
    child: Condition


Condition = Const | Compare | InSet | InSubquery | IsNull | And | Or | Not

TRUE = Const(True)
FALSE = Const(False)


def and_(*conditions: Condition) -> Condition:
    """AND the given conditions, dropping TRUE and collapsing on FALSE."""

    children: list[Condition] = []
    for cond in conditions:
        if cond == TRUE:
            continue
        if cond == FALSE:
            return FALSE
        if isinstance(cond, And):
            children.extend(cond.children)
        else:
            children.append(cond)

    if not children:
        return TRUE
    if len(children) == 1:
        return children[0]
    return And(tuple(children))


def or_(*conditions: Condition) -> Condition:
    """OR the given conditions, dropping FALSE and collapsing on TRUE."""

    children: list[Condition] = []
    for cond in conditions:
        if cond == FALSE:
            continue
        if cond == TRUE:
            return TRUE
        if isinstance(cond, Or):
            children.extend(cond.children)
        else:
            children.append(cond)

    if not children:
        return FALSE
    if len(children) == 1:
        return children[0]
    return Or(tuple(children))


def negate(cond: Condition) -> Condition:
    """Return the logical negation of `cond`, folding it into leaves where possible."""

    if isinstance(cond, Const):
        return Const(not cond.value)
    if isinstance(cond, InSet):
        return InSet(cond.column, cond.values, negated=not cond.negated)
    if isinstance(cond, InSubquery):
        return replace(cond, negated=not cond.negated)
    if isinstance(cond, IsNull):
        return IsNull(cond.column, negated=not cond.negated)
    if isinstance(cond, Compare) and cond.op in ("=", "!="):
        return Compare(cond.column, "!=" if cond.op == "=" else "=", cond.value)
    if isinstance(cond, Not):
        return cond.child
    return Not(cond)


def column_identifier(name: str) -> str:
    """Return `name` if it is a valid (optionally table-qualified) column identifier."""

    if not _IDENTIFIER_RE.fullmatch(name):
        raise SQLBuilderError(f"Invalid column identifier: {name!r}")
    return name


def _compile_children(
        children: Iterable[Condition],
        glue: str,
        params: list[Any],
) -> str:
    parts = [_compile(child, params) for child in children]
    return "(" + f" {glue} ".join(parts) + ")"


def _compile(cond: Condition, params: list[Any]) -> str:
    if isinstance(cond, Const):
        return "TRUE" if cond.value else "FALSE"

    if isinstance(cond, Compare):
        if cond.value is None:
            # `= NULL` never matches in SQL; treat it as a null check instead.
            return _compile(IsNull(cond.column, negated=cond.op == "!="), params)
        params.append(cond.value)
        return f"{column_identifier(cond.column)} {_SQL_OPERATORS[cond.op]} %s"

    if isinstance(cond, InSet):
        if not cond.values:
            return "TRUE" if cond.negated else "FALSE"
        params.extend(cond.values)
        placeholders = ", ".join(["%s"] * len(cond.values))
        keyword = "NOT IN" if cond.negated else "IN"
        return f"{column_identifier(cond.column)} {keyword} ({placeholders})"

    if isinstance(cond, InSubquery):
        if not _TABLE_RE.fullmatch(cond.table):
            raise SQLBuilderError(f"Invalid table identifier: {cond.table!r}")
        select = f"SELECT {column_identifier(cond.select_column)} FROM {cond.table}"
        if cond.where != TRUE:
            select += f" WHERE {_compile(cond.where, params)}"
        keyword = "NOT IN" if cond.negated else "IN"
        return f"{column_identifier(cond.column)} {keyword} ({select})"

    if isinstance(cond, IsNull):
        keyword = "IS NOT NULL" if cond.negated else "IS NULL"
        return f"{column_identifier(cond.column)} {keyword}"

    if isinstance(cond, And):
        if not cond.children:
            return "TRUE"
        return _compile_children(cond.children, "AND", params)

    if isinstance(cond, Or):
        if not cond.children:
            return "FALSE"
        return _compile_children(cond.children, "OR", params)

    if isinstance(cond, Not):
        return f"NOT ({_compile(cond.child, params)})"

    raise SQLBuilderError(f"Unsupported condition node: {cond!r}")


def compile_condition(cond: Condition) -> tuple[str, tuple[Any, ...]]:
    """Render a condition into a SQL fragment with `%s` placeholders and its params."""

    params: list[Any] = []
    sql = _compile(cond, params)
    return sql, tuple(params)


def matches(
        cond: Condition,
        row: Mapping[str, Any],
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
) -> bool:
    """Evaluate a condition against an in-memory row keyed by column name.

    `InSubquery` nodes select from `tables` (rows keyed by table name).

    Comparisons against a missing or NULL value are false, like SQL's UNKNOWN in a WHERE clause.
    Negation is two-valued, so `Not` over a NULL comparison is true.
    """

    if isinstance(cond, Const):
        return cond.value

    if isinstance(cond, Compare):
        value = row.get(cond.column)
        if cond.value is None:
            return (value is None) != (cond.op == "!=")
        if value is None:
            return False
        return _PY_OPERATORS[cond.op](value, cond.value)

    if isinstance(cond, InSet):
        value = row.get(cond.column)
        if value is None:
            return False
        return (value in cond.values) != cond.negated

    if isinstance(cond, InSubquery):
        if tables is None:
            raise SQLBuilderError(f"No rows given for subquery table {cond.table!r}")
        value = row.get(cond.column)
        if value is None:
            return False
        selected = [
            inner.get(cond.select_column)
            for inner in tables.get(cond.table, ())
            if matches(cond.where, inner, tables)
        ]
        return (value in selected) != cond.negated

    if isinstance(cond, IsNull):
        return (row.get(cond.column) is None) != cond.negated

    if isinstance(cond, And):
        return all(matches(child, row, tables) for child in cond.children)

    if isinstance(cond, Or):
        return any(matches(child, row, tables) for child in cond.children)

    if isinstance(cond, Not):
        return not matches(cond.child, row, tables)

    raise SQLBuilderError(f"Unsupported condition node: {cond!r}")
