"""Handle-to-id resolution.

Handles are human-readable names (`"news"`, `"editors"`) stored in reference tables. They are
resolved to ids with a single lookup; a handle set that matches no rows yields an impossible
`IdFilter`, which callers must treat as "no entries possible", not as "no filter".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from src.query.context import LookupExecutor
from src.query.models import IdFilter
from src.sql.columns import HANDLE_COLUMN, HANDLE_TABLES, ID_COLUMN
from src.sql.errors import SQLBuilderError
from src.sql.params import parse_param
from src.sql.statements import LookupQuery

logger = logging.getLogger(__name__)


def _has_id(value: Any) -> bool:
    return not isinstance(value, (str, bytes)) and isinstance(getattr(value, "id", None), int)


def _resolved_ids(value: Any) -> list[int] | None:
    """Return ids when `value` is an already-resolved object or a sequence of them."""

    if _has_id(value):
        return [value.id]
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and value:
        if all(_has_id(v) for v in value):
            return [v.id for v in value]
    return None


def resolve_handle(lookup: LookupExecutor, table: str, value: Any) -> IdFilter:
    """Resolve handle(s) in `table` to an id filter.

    Raises:
        SQLBuilderError: If `table` is not a handle table.
        MalformedPredicateError: If a handle value carries an unparseable operator.
    """

    if table not in HANDLE_TABLES:
        raise SQLBuilderError(f"Unsupported handle table: {table!r}")

    ids = _resolved_ids(value)
    if ids is not None:
        return IdFilter.of(ids)

    query = LookupQuery(column=ID_COLUMN, table=table, where=parse_param(HANDLE_COLUMN, value))
    ids = lookup.column(query)

    if not ids:
        logger.debug("handle lookup matched nothing table=%s handle=%r", table, value)
        return IdFilter.impossible()

    logger.debug("handle lookup table=%s matched=%d", table, len(ids))
    return IdFilter.of(ids)
