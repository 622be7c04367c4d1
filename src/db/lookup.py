"""psycopg-backed lookup executor for handle and structure lookups."""

from __future__ import annotations

import logging
from typing import Any, LiteralString, cast

import psycopg

from src.sql.builder import build_lookup
from src.sql.statements import LookupQuery

logger = logging.getLogger(__name__)


class PsycopgLookup:
    """Runs `LookupQuery` objects on a synchronous connection.

    DB errors are not caught; they propagate to the caller.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def _fetch(self, query: LookupQuery) -> list[tuple[Any, ...]]:
        built = build_lookup(query)
        logger.debug("lookup table=%s column=%s", query.table, query.column)
        with self._conn.cursor() as cur:
            cur.execute(cast(LiteralString, built.sql), built.params)
            return cur.fetchall()

    def column(self, query: LookupQuery) -> list[Any]:
        return [row[0] for row in self._fetch(query)]

    def scalar(self, query: LookupQuery) -> Any:
        rows = self._fetch(query)
        if not rows:
            return None
        return rows[0][0]
