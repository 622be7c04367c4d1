"""Load an entries dataset (JSON) into Postgres.

The dataset is a JSON object with the list keys `sections`, `entry_types`, `user_groups`, `users`
and `entries`; see `src/db/dataset_rows.py` for the fields each row reads.
"""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import psycopg

from src.config.logging import configure_logging
from src.config.settings import load_settings
from src.db.connection import connect_utc
from src.db.dataset_rows import (
    iter_element_i18n_rows,
    iter_element_rows,
    iter_entry_rows,
    iter_entry_type_rows,
    iter_membership_rows,
    iter_section_rows,
    iter_user_group_rows,
    iter_user_rows,
)

logger = logging.getLogger(__name__)

DATASET_KEYS: tuple[str, ...] = ("sections", "entry_types", "user_groups", "users", "entries")

RowsFn = Callable[[Sequence[Mapping[str, Any]]], Iterable[tuple[Any, ...]]]

# (table, payload key, row builder, insert statement), in foreign-key order.
_INSERTS: tuple[tuple[str, str, RowsFn, str], ...] = (
    (
        "sections",
        "sections",
        iter_section_rows,
        "INSERT INTO sections (id, handle, type, structure_id) VALUES (%s, %s, %s, %s)",
    ),
    (
        "entry_types",
        "entry_types",
        iter_entry_type_rows,
        "INSERT INTO entry_types (id, section_id, handle) VALUES (%s, %s, %s)",
    ),
    (
        "user_groups",
        "user_groups",
        iter_user_group_rows,
        "INSERT INTO user_groups (id, handle) VALUES (%s, %s)",
    ),
    ("users", "users", iter_user_rows, "INSERT INTO users (id, username) VALUES (%s, %s)"),
    (
        "user_groups_users",
        "users",
        iter_membership_rows,
        "INSERT INTO user_groups_users (group_id, user_id) VALUES (%s, %s)",
    ),
    (
        "elements",
        "entries",
        iter_element_rows,
        "INSERT INTO elements (id, enabled) VALUES (%s, %s)",
    ),
    (
        "elements_i18n",
        "entries",
        iter_element_i18n_rows,
        "INSERT INTO elements_i18n (element_id, locale, slug) VALUES (%s, %s, %s)",
    ),
    (
        "entries",
        "entries",
        iter_entry_rows,
        """
        INSERT INTO entries (id, section_id, type_id, author_id, post_date, expiry_date)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
    ),
)

_TRUNCATE_SQL = (
    "TRUNCATE entries, elements_i18n, elements, user_groups_users, users, user_groups, "
    "entry_types, sections"
)


def parse_dataset(payload: Any) -> dict[str, list[dict[str, Any]]]:
    """Validate the top-level shape of a dataset payload.

    Raises:
        ValueError: If the payload is not an object with a list under every dataset key.
    """

    if not isinstance(payload, dict):
        raise ValueError("Unexpected dataset format: expected a JSON object")

    missing = [key for key in DATASET_KEYS if not isinstance(payload.get(key), list)]
    if missing:
        raise ValueError(f"Unexpected dataset format: missing lists for {', '.join(missing)}")
    return {key: payload[key] for key in DATASET_KEYS}


def insert_dataset(
        conn: psycopg.Connection,
        dataset: Mapping[str, Sequence[Mapping[str, Any]]],
        *,
        truncate: bool = False,
) -> dict[str, int]:
    """Insert a dataset in one transaction and return the row count per table."""

    counts: dict[str, int] = {}
    with conn.transaction():
        with conn.cursor() as cur:
            if truncate:
                cur.execute(_TRUNCATE_SQL, prepare=False)

            for table, key, rows_fn, statement in _INSERTS:
                rows = list(rows_fn(dataset[key]))
                if rows:
                    cur.executemany(statement, rows)
                counts[table] = len(rows)

    logger.info("dataset inserted %s", " ".join(f"{t}={n}" for t, n in counts.items()))
    return counts


def main() -> None:
    """CLI entry point for loading a dataset into Postgres."""

    parser = argparse.ArgumentParser(description="Load an entries dataset into Postgres.")
    parser.add_argument("--path", required=True, help="Path to the dataset JSON file.")
    parser.add_argument(
        "--truncate",
        action="store_true",
        help="TRUNCATE target tables before loading (destructive).",
    )
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings.log_level)

    dataset = parse_dataset(json.loads(Path(args.path).read_text(encoding="utf-8")))
    with connect_utc(settings.database_url) as conn:
        insert_dataset(conn, dataset, truncate=args.truncate)


if __name__ == "__main__":
    main()
