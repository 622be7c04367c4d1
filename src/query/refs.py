"""Entry reference parsing.

A reference is `"section-handle/slug"` or just `"slug"`. Several references are ORed: an entry
matches if it satisfies any one of them.
"""

from __future__ import annotations

from typing import Any

from src.sql.columns import ELEMENT_SLUG, SECTION_HANDLE
from src.sql.conditions import Condition, and_, or_
from src.sql.params import parse_param, to_list


def parse_refs(refs: Any) -> tuple[Condition | None, bool]:
    """Parse reference string(s) into a condition.

    Returns:
        `(condition, join_required)`. `condition` is `None` when no reference has a non-empty
        segment. `join_required` is true when any reference names a section, so the sections
        table must be joined.
    """

    conditions: list[Condition] = []
    join_required = False

    for ref in to_list(refs):
        parts = [p for p in str(ref).split("/") if p]
        if not parts:
            continue

        if len(parts) == 1:
            conditions.append(parse_param(ELEMENT_SLUG, parts[0]))
        else:
            conditions.append(
                and_(
                    parse_param(SECTION_HANDLE, parts[0]),
                    parse_param(ELEMENT_SLUG, parts[1]),
                )
            )
            join_required = True

    if not conditions:
        return None, False
    return or_(*conditions), join_required
