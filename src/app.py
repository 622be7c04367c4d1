"""Application composition root.

This module wires configuration, the DB pool, and the query collaborators together so callers can
run an `EntryQuery` with one call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from src.auth.identity import StaticIdentityContext
from src.auth.registry import SectionRegistry
from src.config.settings import Settings
from src.db.lookup import PsycopgLookup
from src.db.pool import create_pool, get_conn
from src.db.query import count_entries, fetch_entries
from src.db.sections import fetch_sections
from src.query.context import CategoryRegistry, IdentityContext, PrepareContext, PrepareHook
from src.query.entry_query import EntryQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """Shared application dependencies."""

    settings: Settings
    pool: ConnectionPool

    def context(
            self,
            conn: psycopg.Connection,
            *,
            identity_context: IdentityContext | None = None,
            categories: CategoryRegistry | None = None,
            now: datetime | None = None,
            hook: PrepareHook | None = None,
    ) -> PrepareContext:
        """Build the prepare context for one request on `conn`.

        Without an identity context the request is anonymous; without a registry, sections are
        loaded from the DB and scoped to the identity.
        """

        if identity_context is None:
            identity_context = StaticIdentityContext()
        if categories is None:
            categories = SectionRegistry(fetch_sections(conn), identity_context)

        return PrepareContext(
            lookup=PsycopgLookup(conn),
            identity_context=identity_context,
            categories=categories,
            author_filtering=self.settings.author_filtering_enabled,
            locale=self.settings.default_locale,
            now=now,
            hook=hook,
        )

    def fetch(self, query: EntryQuery, **context_kwargs: Any) -> list[dict[str, Any]]:
        """Prepare and run `query` on a pooled connection."""

        with get_conn(self.pool) as conn:
            prepared = query.prepare(self.context(conn, **context_kwargs))
            rows = fetch_entries(conn, prepared)

        logger.debug("fetched entries rows=%d empty=%s", len(rows), prepared.is_empty)
        return rows

    def count(self, query: EntryQuery, **context_kwargs: Any) -> int:
        """Prepare `query` and count its matches on a pooled connection."""

        with get_conn(self.pool) as conn:
            prepared = query.prepare(self.context(conn, **context_kwargs))
            return count_entries(conn, prepared)


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        The returned DB pool is not opened. Call `app.pool.open()` at startup.
    """

    pool = create_pool(settings.database_url, max_size=settings.db_pool_max_size)
    return App(settings=settings, pool=pool)
