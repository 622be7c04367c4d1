"""Postgres connection pool.

Entry queries and their handle lookups run synchronously within one request, on one pooled
connection. Every connection handed out by the pool is configured to use UTC.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import psycopg
from dotenv import load_dotenv
from psycopg_pool import ConnectionPool

from src.db.connection import require_database_url
from src.db.session import ensure_utc


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> ConnectionPool:
    """Create a DB pool.

    Notes:
        - The returned pool is created with `open=False`. Call `pool.open()` at startup.
        - If `database_url` is omitted, the function loads `.env` and reads `DATABASE_URL`.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return ConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=ensure_utc,
    )


@contextmanager
def get_conn(pool: ConnectionPool) -> Iterator[psycopg.Connection]:
    """Borrow a connection from the pool for the duration of one request."""

    with pool.connection() as conn:
        yield conn
