"""Dataset-to-row conversion helpers.

Seeding a database (`src/db/seed.py`, integration tests) starts from a parsed dataset payload with
`sections`, `entry_types`, `user_groups`, `users` (with embedded group ids) and `entries` (with
element fields inlined). These helpers convert it into row tuples matching the tables created by
the migrations, in insert order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from src.query.context import DEFAULT_LOCALE


def iter_section_rows(sections: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for section in sections:
        yield (
            int(section["id"]),
            str(section["handle"]),
            str(section.get("type", "channel")),
            section.get("structure_id"),
        )


def iter_entry_type_rows(entry_types: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for entry_type in entry_types:
        yield int(entry_type["id"]), int(entry_type["section_id"]), str(entry_type["handle"])


def iter_user_group_rows(groups: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for group in groups:
        yield int(group["id"]), str(group["handle"])


def iter_user_rows(users: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for user in users:
        yield int(user["id"]), str(user["username"])


def iter_membership_rows(users: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    """Yield `(group_id, user_id)` rows for the `user_groups_users` table."""

    for user in users:
        for group_id in user.get("group_ids", []):
            yield int(group_id), int(user["id"])


def iter_element_rows(entries: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for entry in entries:
        yield int(entry["id"]), bool(entry.get("enabled", True))


def iter_element_i18n_rows(entries: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    """Yield `(element_id, locale, slug)` rows: the entry's own locale, then its `translations`."""

    for entry in entries:
        element_id = int(entry["id"])
        yield element_id, str(entry.get("locale", DEFAULT_LOCALE)), entry.get("slug")
        for translation in entry.get("translations", []):
            yield element_id, str(translation["locale"]), translation.get("slug")


def iter_entry_rows(entries: Sequence[Mapping[str, Any]]) -> Iterable[tuple[Any, ...]]:
    for entry in entries:
        author_id = entry.get("author_id")
        yield (
            int(entry["id"]),
            int(entry["section_id"]),
            int(entry["type_id"]),
            int(author_id) if author_id is not None else None,
            entry.get("post_date"),
            entry.get("expiry_date"),
        )
