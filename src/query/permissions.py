"""Editable-entry permission scoping."""

from __future__ import annotations

from src.query.context import CategoryRegistry, IdentityContext
from src.query.models import SectionType
from src.sql.columns import ENTRY_AUTHOR_ID, ENTRY_SECTION_ID
from src.sql.conditions import TRUE, Compare, Condition, InSet, and_, or_
from src.sql.errors import PermissionDeniedError

PEER_ENTRIES_PERMISSION = "editPeerEntries:{section_id}"


def peer_entries_permission(section_id: int) -> str:
    return PEER_ENTRIES_PERMISSION.format(section_id=section_id)


def scope_editable(
        editable: bool,
        *,
        identity_context: IdentityContext,
        categories: CategoryRegistry,
) -> Condition:
    """Restrict a query to entries the current identity may edit.

    Every editable section is allowed. In non-single sections where the identity lacks the
    peer-entries permission, only the identity's own entries are allowed.

    Raises:
        PermissionDeniedError: If `editable` is set and there is no authenticated identity.
    """

    if not editable:
        return TRUE

    identity = identity_context.current_identity()
    if identity is None:
        raise PermissionDeniedError("editable entries require an authenticated identity")

    conditions: list[Condition] = [
        InSet(ENTRY_SECTION_ID, tuple(sorted(categories.editable_category_ids()))),
    ]

    for section in categories.editable_categories():
        if section.type == SectionType.single:
            continue
        if identity.can(peer_entries_permission(section.id)):
            continue
        conditions.append(
            or_(
                Compare(ENTRY_SECTION_ID, "!=", section.id),
                Compare(ENTRY_AUTHOR_ID, "=", identity.id),
            )
        )

    return and_(*conditions)
