"""DB session configuration helpers.

Stored timestamps are compared against UTC ISO 8601 params; for that to be reliable every session
must be locked to the UTC timezone.
"""

from __future__ import annotations

import psycopg


def ensure_utc(conn: psycopg.Connection) -> None:
    """Set the current Postgres session timezone to UTC."""

    with conn.cursor() as cur:
        cur.execute("SET TIME ZONE 'UTC'", prepare=False)
    # `SET` opens a transaction when autocommit is off; commit so pooled connections stay idle.
    conn.commit()
