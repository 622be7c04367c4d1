"""Deterministic SQL builder.

The builder renders a `PreparedQuery` (or a handle/structure `LookupQuery`) into a parameterized
SQL query. Identifiers (tables, columns, joins) come from allowlisted constants; only values become
bound parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.sql.columns import HANDLE_TABLES
from src.sql.conditions import TRUE, Condition, column_identifier, compile_condition
from src.sql.errors import SQLBuilderError
from src.sql.statements import Join, LookupQuery, OrderBy, PreparedQuery


@dataclass(frozen=True)
class BuiltQuery:
    """A parameterized SQL query ready for execution."""

    sql: str
    params: tuple[Any, ...]


def _where(condition: Condition) -> tuple[str, tuple[Any, ...]]:
    if condition == TRUE:
        return "", ()
    clause, params = compile_condition(condition)
    return "WHERE " + clause, params


def _join_sql(join: Join, params: list[Any]) -> str:
    sql = f"{join.kind} JOIN {join.table} {join.alias} ON {join.on}"
    if join.condition != TRUE:
        clause, join_params = compile_condition(join.condition)
        sql += f" AND {clause}"
        params.extend(join_params)
    return sql


def _order_sql(order_by: tuple[OrderBy, ...]) -> str:
    if not order_by:
        return ""
    items = [f"{o.column} {'DESC' if o.descending else 'ASC'}" for o in order_by]
    return "ORDER BY " + ", ".join(items)


def _from_sql(prepared: PreparedQuery, params: list[Any]) -> str:
    """Render FROM and its joins; join params are appended to `params` in clause order."""

    parts = [f"FROM {prepared.from_table} {prepared.from_table}"]
    parts.extend(_join_sql(j, params) for j in prepared.joins)
    return " ".join(parts)


def _require_executable(prepared: PreparedQuery) -> None:
    if prepared.is_empty:
        raise SQLBuilderError("Prepared query is vacuously empty and must not be executed")


def build_lookup(query: LookupQuery) -> BuiltQuery:
    """Build `SELECT <column> FROM <table> WHERE ...` for a reference-table lookup."""

    if query.table not in HANDLE_TABLES:
        raise SQLBuilderError(f"Unsupported lookup table: {query.table!r}")

    where_sql, params = _where(query.where)
    sql = f"SELECT {column_identifier(query.column)} FROM {query.table} {where_sql}".strip()
    return BuiltQuery(sql=sql, params=params)


def build_entry_query(prepared: PreparedQuery) -> BuiltQuery:
    """Build the row-returning SQL for a prepared entry query.

    Raises:
        SQLBuilderError: If the prepared query is vacuously empty.
    """

    _require_executable(prepared)

    if not prepared.select:
        raise SQLBuilderError("Prepared query selects no columns")

    params: list[Any] = []
    from_sql = _from_sql(prepared, params)
    where_sql, where_params = _where(prepared.where)
    params.extend(where_params)

    clauses = [
        "SELECT " + ", ".join(column_identifier(c) for c in prepared.select),
        from_sql,
        where_sql,
        _order_sql(prepared.order_by),
    ]

    if prepared.limit is not None:
        clauses.append("LIMIT %s")
        params.append(prepared.limit)
    if prepared.offset is not None:
        clauses.append("OFFSET %s")
        params.append(prepared.offset)

    sql = " ".join(c for c in clauses if c)
    return BuiltQuery(sql=sql, params=tuple(params))


def build_entry_count(prepared: PreparedQuery) -> BuiltQuery:
    """Build a scalar `COUNT(*)` query for a prepared entry query (ordering and paging dropped)."""

    _require_executable(prepared)

    params: list[Any] = []
    from_sql = _from_sql(prepared, params)
    where_sql, where_params = _where(prepared.where)
    sql = f"SELECT COUNT(*)::bigint {from_sql} {where_sql}".strip()
    return BuiltQuery(sql=sql, params=(*params, *where_params))
