"""Section loading."""

from __future__ import annotations

import psycopg
from psycopg.rows import dict_row

from src.query.models import Section


def fetch_sections(conn: psycopg.Connection) -> list[Section]:
    """Load every section, ordered by id."""

    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute("SELECT id, handle, type, structure_id FROM sections ORDER BY id")
        return [Section.model_validate(row) for row in cur.fetchall()]
