"""Apply SQL migrations to the configured PostgreSQL database.

Migrations are plain `.sql` files under `src/db/migrations/`, applied in lexicographic order.
Applied migration filenames are tracked in the `schema_migrations` table.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import LiteralString, cast

import psycopg
from dotenv import load_dotenv

from src.config.logging import configure_logging
from src.config.settings import load_settings
from src.db.connection import connect_utc, require_database_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_DROP_TABLES_SQL = """
DROP TABLE IF EXISTS entries;
DROP TABLE IF EXISTS elements_i18n;
DROP TABLE IF EXISTS elements;
DROP TABLE IF EXISTS user_groups_users;
DROP TABLE IF EXISTS users;
DROP TABLE IF EXISTS user_groups;
DROP TABLE IF EXISTS entry_types;
DROP TABLE IF EXISTS sections;
DROP TABLE IF EXISTS schema_migrations;
"""


def _ensure_schema_migrations(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations
        (
            filename   TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
        prepare=False,
    )


def list_migration_files() -> list[Path]:
    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(f"Migrations directory does not exist: {MIGRATIONS_DIR}")

    files = sorted(p for p in MIGRATIONS_DIR.iterdir() if p.is_file() and p.suffix == ".sql")
    if not files:
        raise RuntimeError(f"No .sql migration files found in {MIGRATIONS_DIR}")
    return files


def _get_applied_migrations(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM schema_migrations", prepare=False).fetchall()
    return {r[0] for r in rows}


def _apply_migration(conn: psycopg.Connection, filename: str, sql_text: str) -> None:
    with conn.transaction():
        conn.execute(cast(LiteralString, sql_text), prepare=False)
        conn.execute(
            "INSERT INTO schema_migrations(filename) VALUES (%s)",
            (filename,),
            prepare=False,
        )


def apply_migrations(conn: psycopg.Connection) -> list[str]:
    """Apply pending migrations on `conn` and return the filenames that were applied."""

    _ensure_schema_migrations(conn)
    applied = _get_applied_migrations(conn)

    newly_applied: list[str] = []
    for file_path in list_migration_files():
        if file_path.name in applied:
            continue

        sql_text = file_path.read_text(encoding="utf-8")
        _apply_migration(conn, file_path.name, sql_text)
        logger.info("applied migration filename=%s", file_path.name)
        newly_applied.append(file_path.name)

    return newly_applied


def migrate(*, recreate: bool, database_url: str | None = None) -> None:
    """Run migrations against `database_url`, or the one in `DATABASE_URL` when omitted."""

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    with connect_utc(database_url) as conn:
        if recreate:
            conn.execute(_DROP_TABLES_SQL, prepare=False)
            conn.commit()

        apply_migrations(conn)


def main() -> None:
    """CLI entry point for applying migrations."""

    parser = argparse.ArgumentParser(description="Apply SQL migrations to Postgres.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop existing tables and re-apply all migrations (destructive).",
    )
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings.log_level)
    migrate(recreate=args.recreate, database_url=settings.database_url)


if __name__ == "__main__":
    main()
