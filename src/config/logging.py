"""Process logging configuration."""

from __future__ import annotations

import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure Python logging for the process.

    CLI entry points pass `Settings.log_level`. Query modules log lookups and prepared-query shapes
    at DEBUG and aborted (empty) queries at INFO.
    """

    log_level = level.upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # `basicConfig` is a no-op when the root logger already has handlers.
    logging.getLogger().setLevel(log_level)

    # psycopg_pool logs connection lifecycle events at INFO.
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
