"""Allowlisted SQL identifiers.

All table and column names referenced in generated SQL must come from these constants; no
user-provided identifier should ever be interpolated into SQL.
"""

from __future__ import annotations

ELEMENTS_TABLE = "elements"
ELEMENTS_I18N_TABLE = "elements_i18n"
ENTRIES_TABLE = "entries"
SECTIONS_TABLE = "sections"
ENTRY_TYPES_TABLE = "entry_types"
USER_GROUPS_TABLE = "user_groups"
USER_GROUPS_USERS_TABLE = "user_groups_users"

# Tables whose rows can be looked up by `handle`.
HANDLE_TABLES: frozenset[str] = frozenset({SECTIONS_TABLE, ENTRY_TYPES_TABLE, USER_GROUPS_TABLE})

HANDLE_COLUMN = "handle"
ID_COLUMN = "id"
STRUCTURE_ID_COLUMN = "structure_id"

ELEMENT_ID = "elements.id"
ELEMENT_ENABLED = "elements.enabled"
ELEMENT_SLUG = "elements_i18n.slug"
ELEMENT_LOCALE = "elements_i18n.locale"

ENTRY_SECTION_ID = "entries.section_id"
ENTRY_TYPE_ID = "entries.type_id"
ENTRY_AUTHOR_ID = "entries.author_id"
ENTRY_POST_DATE = "entries.post_date"
ENTRY_EXPIRY_DATE = "entries.expiry_date"

SECTION_HANDLE = "sections.handle"
USER_GROUP_ID = "user_groups_users.group_id"
USER_GROUP_USER_ID = "user_groups_users.user_id"

# Columns whose `"true"` / `"false"` string params are bound as booleans.
BOOLEAN_COLUMNS: frozenset[str] = frozenset({ELEMENT_ENABLED})

BASE_ELEMENT_COLUMNS: tuple[str, ...] = (
    ELEMENT_ID,
    ELEMENT_ENABLED,
    ELEMENT_SLUG,
)

ENTRY_COLUMNS: tuple[str, ...] = (
    ENTRY_SECTION_ID,
    ENTRY_TYPE_ID,
    ENTRY_AUTHOR_ID,
    ENTRY_POST_DATE,
    ENTRY_EXPIRY_DATE,
)

ORDERABLE_COLUMNS: dict[str, str] = {
    "id": ELEMENT_ID,
    "slug": ELEMENT_SLUG,
    "date_created": "elements.date_created",
    "date_updated": "elements.date_updated",
    "post_date": ENTRY_POST_DATE,
    "expiry_date": ENTRY_EXPIRY_DATE,
}
