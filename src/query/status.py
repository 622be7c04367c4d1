"""Entry status conditions (live / pending / expired / disabled)."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from src.sql.columns import ELEMENT_ENABLED, ENTRY_EXPIRY_DATE, ENTRY_POST_DATE
from src.sql.conditions import Compare, Condition, IsNull, and_, or_
from src.sql.errors import SQLBuilderError
from src.sql.params import normalize_datetime, to_list


class EntryStatus(StrEnum):
    live = "live"
    pending = "pending"
    expired = "expired"
    disabled = "disabled"


def _status(value: Any) -> EntryStatus:
    try:
        return EntryStatus(str(value).lower())
    except ValueError as exc:
        raise SQLBuilderError(f"Unsupported entry status: {value!r}") from exc


def _single_status_condition(status: EntryStatus, now: str) -> Condition:
    enabled = Compare(ELEMENT_ENABLED, "=", True)

    if status == EntryStatus.live:
        return and_(
            enabled,
            Compare(ENTRY_POST_DATE, "<=", now),
            or_(IsNull(ENTRY_EXPIRY_DATE), Compare(ENTRY_EXPIRY_DATE, ">", now)),
        )
    if status == EntryStatus.pending:
        return and_(enabled, Compare(ENTRY_POST_DATE, ">", now))
    if status == EntryStatus.expired:
        return and_(
            enabled,
            IsNull(ENTRY_EXPIRY_DATE, negated=True),
            Compare(ENTRY_EXPIRY_DATE, "<=", now),
        )
    return Compare(ELEMENT_ENABLED, "=", False)


def status_condition(statuses: Any, now: datetime) -> Condition | None:
    """Build the condition for one status or a list of statuses (ORed).

    Returns `None` when no status filter applies.
    """

    values = to_list(statuses)
    if not values:
        return None

    stamp = normalize_datetime(now)
    return or_(*(_single_status_condition(_status(v), stamp) for v in values))
