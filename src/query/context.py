"""Collaborator protocols and the preparation context.

`EntryQuery.prepare()` receives everything it needs explicitly through a `PrepareContext`; there
is no global application state.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from src.query.models import Section
from src.sql.statements import LookupQuery, QueryParts

DEFAULT_LOCALE = "en_us"


class LookupExecutor(Protocol):
    """Synchronous reference-table lookups."""

    def column(self, query: LookupQuery) -> list[Any]:
        """Return the selected column of every matching row."""

    def scalar(self, query: LookupQuery) -> Any:
        """Return the selected column of the first matching row, or `None`."""


class Identity(Protocol):
    @property
    def id(self) -> int: ...

    def can(self, permission: str) -> bool: ...


class IdentityContext(Protocol):
    def current_identity(self) -> Identity | None: ...


class CategoryRegistry(Protocol):
    def editable_category_ids(self) -> Collection[int]: ...

    def editable_categories(self) -> Iterable[Section]: ...


class PrepareHook(Protocol):
    """Base preparation step run last; may raise `QueryAbortedError` to signal no results."""

    def __call__(self, parts: QueryParts) -> None: ...


@dataclass(frozen=True)
class PrepareContext:
    """Dependencies and request-scoped settings for `EntryQuery.prepare()`.

    `author_filtering` is the capability flag gating the author and author-group filters. Entry
    rows carry the translation for `locale` only.
    """

    lookup: LookupExecutor
    identity_context: IdentityContext
    categories: CategoryRegistry
    author_filtering: bool = True
    locale: str = DEFAULT_LOCALE
    now: datetime | None = None
    hook: PrepareHook | None = None
