"""Entry query execution.

These helpers honor the `is_empty` flag of a prepared query: a vacuously empty query returns no
rows (or `0`) without issuing any SQL. All values are bound parameters.
"""

from __future__ import annotations

from typing import Any, LiteralString, cast

import psycopg
from psycopg.rows import dict_row

from src.sql.builder import build_entry_count, build_entry_query
from src.sql.statements import PreparedQuery


def fetch_entries(conn: psycopg.Connection, prepared: PreparedQuery) -> list[dict[str, Any]]:
    """Execute a prepared entry query and return its rows as dicts.

    DB errors are not swallowed (caller decides how to handle them).
    """

    if prepared.is_empty:
        return []

    built = build_entry_query(prepared)
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(cast(LiteralString, built.sql), built.params)
        return cur.fetchall()


def count_entries(conn: psycopg.Connection, prepared: PreparedQuery) -> int:
    """Count the rows a prepared entry query matches.

    Contract:
        - Returns `0` for a vacuously empty query without touching the DB.
        - Returns `0` if the query yields no rows or the count is NULL.
    """

    if prepared.is_empty:
        return 0

    built = build_entry_count(prepared)
    with conn.cursor() as cur:
        cur.execute(cast(LiteralString, built.sql), built.params)
        row = cur.fetchone()

    if not row or row[0] is None:
        return 0
    return int(row[0])
