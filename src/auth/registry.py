"""Section registry scoped to the current identity."""

from __future__ import annotations

from collections.abc import Iterable

from src.query.context import IdentityContext
from src.query.models import Section

EDIT_ENTRIES_PERMISSION = "editEntries:{section_id}"


class SectionRegistry:
    """Answers which sections the current identity may edit.

    A section is editable when the identity holds `editEntries:<section id>`. Anonymous requests
    can edit nothing.
    """

    def __init__(self, sections: Iterable[Section], identity_context: IdentityContext) -> None:
        self._sections = tuple(sections)
        self._identity_context = identity_context

    def editable_categories(self) -> list[Section]:
        identity = self._identity_context.current_identity()
        if identity is None:
            return []
        return [
            s
            for s in self._sections
            if identity.can(EDIT_ENTRIES_PERMISSION.format(section_id=s.id))
        ]

    def editable_category_ids(self) -> set[int]:
        return {s.id for s in self.editable_categories()}
