"""Fluent entry query.

`EntryQuery` accumulates raw filter state through chained setters. Nothing touches the database
until `prepare()`, which resolves handles, assembles every condition in a fixed order, and returns
a `PreparedQuery` for the executor. A query is prepared exactly once.

Example:
    query = EntryQuery().section("news").after(date(2024, 1, 1)).editable()
    prepared = query.prepare(context)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from src.query.context import LookupExecutor, PrepareContext
from src.query.handles import resolve_handle
from src.query.models import EntryType, IdFilter, Section, UserGroup
from src.query.permissions import scope_editable
from src.query.refs import parse_refs
from src.query.status import EntryStatus, status_condition
from src.sql.columns import (
    ENTRIES_TABLE,
    ENTRY_AUTHOR_ID,
    ENTRY_COLUMNS,
    ENTRY_EXPIRY_DATE,
    ENTRY_POST_DATE,
    ENTRY_SECTION_ID,
    ENTRY_TYPE_ID,
    ENTRY_TYPES_TABLE,
    ID_COLUMN,
    SECTIONS_TABLE,
    STRUCTURE_ID_COLUMN,
    USER_GROUP_ID,
    USER_GROUP_USER_ID,
    USER_GROUPS_TABLE,
    USER_GROUPS_USERS_TABLE,
)
from src.sql.conditions import Compare, InSubquery
from src.sql.errors import QueryAbortedError, QueryStateError, SQLBuilderError
from src.sql.params import gte, lt, normalize_datetime, parse_date_param, parse_param, to_list
from src.sql.statements import (
    Join,
    LookupQuery,
    OrderBy,
    PreparedQuery,
    QueryParts,
    localized_i18n_join,
    parse_order_by,
)

logger = logging.getLogger(__name__)

ENTRIES_JOIN = Join(table=ENTRIES_TABLE, alias=ENTRIES_TABLE, on="entries.id = elements.id")
SECTIONS_JOIN = Join(
    table=SECTIONS_TABLE,
    alias=SECTIONS_TABLE,
    on="sections.id = entries.section_id",
)

DEFAULT_ORDER: tuple[OrderBy, ...] = (OrderBy(ENTRY_POST_DATE, descending=True),)


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple)) and not value:
        return False
    return True


def _date_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return normalize_datetime(value)
    return value


@dataclass
class EntryCriteria:
    """Raw filter state accumulated by `EntryQuery`.

    `section`, `type` and `author_group` hold handle values that are resolved into the matching
    `*_id` filter during `prepare()`.
    """

    section_id: IdFilter = field(default_factory=IdFilter)
    type_id: IdFilter = field(default_factory=IdFilter)
    author_id: IdFilter = field(default_factory=IdFilter)
    author_group_id: IdFilter = field(default_factory=IdFilter)

    section: Any = None
    type: Any = None
    author_group: Any = None

    post_date: Any = None
    expiry_date: Any = None
    editable: bool = False
    ref: Any = None

    structure_id: int | None = None
    structure_id_set: bool = False

    order_by: tuple[OrderBy, ...] | None = None
    status: Any = EntryStatus.live
    limit: int | None = None
    offset: int | None = None


class EntryQuery:
    """Fluent builder for entry queries. Every setter returns `self`."""

    def __init__(self) -> None:
        self.criteria = EntryCriteria()
        self._prepare_called = False
        self._prepared: PreparedQuery | None = None

    @property
    def prepared(self) -> PreparedQuery | None:
        return self._prepared

    def _mutable(self) -> EntryCriteria:
        if self._prepare_called:
            raise QueryStateError("EntryQuery cannot be modified after prepare()")
        return self.criteria

    # General parameters

    def editable(self, value: bool = True) -> EntryQuery:
        """Only return entries the current identity may edit."""

        self._mutable().editable = value
        return self

    def section(self, value: Any) -> EntryQuery:
        """Filter by section handle(s), or by `Section` object(s).

        A single `Section` object also sets the structure id, unless the caller already set one.
        """

        c = self._mutable()
        if isinstance(value, Section):
            if not c.structure_id_set:
                c.structure_id = value.structure_id
                c.structure_id_set = True
            c.section = None
            c.section_id = IdFilter.of(value.id)
        else:
            c.section = value
            c.section_id = IdFilter()
        return self

    def section_id(self, value: Any) -> EntryQuery:
        c = self._mutable()
        c.section = None
        c.section_id = IdFilter.of(value)
        return self

    def type(self, value: Any) -> EntryQuery:
        """Filter by entry type handle(s), or by `EntryType` object(s)."""

        c = self._mutable()
        if isinstance(value, EntryType):
            c.type = None
            c.type_id = IdFilter.of(value.id)
        else:
            c.type = value
            c.type_id = IdFilter()
        return self

    def type_id(self, value: Any) -> EntryQuery:
        c = self._mutable()
        c.type = None
        c.type_id = IdFilter.of(value)
        return self

    def author_id(self, value: Any) -> EntryQuery:
        self._mutable().author_id = IdFilter.of(value)
        return self

    def author_group(self, value: Any) -> EntryQuery:
        """Filter by the handle(s) of user groups the author must belong to."""

        c = self._mutable()
        if isinstance(value, UserGroup):
            c.author_group = None
            c.author_group_id = IdFilter.of(value.id)
        else:
            c.author_group = value
            c.author_group_id = IdFilter()
        return self

    def author_group_id(self, value: Any) -> EntryQuery:
        c = self._mutable()
        c.author_group = None
        c.author_group_id = IdFilter.of(value)
        return self

    def post_date(self, value: Any) -> EntryQuery:
        """Replace the post date filter."""

        self._mutable().post_date = value
        return self

    def before(self, value: date | datetime | str) -> EntryQuery:
        """Only allow entries whose post date is before `value` (appends to `post_date`)."""

        c = self._mutable()
        c.post_date = [*to_list(c.post_date), lt(_date_value(value))]
        return self

    def after(self, value: date | datetime | str) -> EntryQuery:
        """Only allow entries whose post date is on or after `value`."""

        c = self._mutable()
        c.post_date = [*to_list(c.post_date), gte(_date_value(value))]
        return self

    def expiry_date(self, value: Any) -> EntryQuery:
        self._mutable().expiry_date = value
        return self

    def ref(self, value: str | Sequence[str] | None) -> EntryQuery:
        """Filter by reference(s) of the form `"section-handle/slug"` or `"slug"`."""

        self._mutable().ref = value
        return self

    def structure_id(self, value: int | None) -> EntryQuery:
        c = self._mutable()
        c.structure_id = value
        c.structure_id_set = True
        return self

    def order_by(self, value: str | OrderBy | Sequence[OrderBy] | None) -> EntryQuery:
        c = self._mutable()
        if value is None:
            c.order_by = None
        elif isinstance(value, str):
            c.order_by = parse_order_by(value)
        elif isinstance(value, OrderBy):
            c.order_by = (value,)
        else:
            c.order_by = tuple(value)
        return self

    def status(self, value: Any) -> EntryQuery:
        """Filter by status (`live`, `pending`, `expired`, `disabled`); `None` disables it."""

        self._mutable().status = value
        return self

    def limit(self, value: int | None) -> EntryQuery:
        if value is not None and value < 0:
            raise SQLBuilderError("limit must be a non-negative integer")
        self._mutable().limit = value
        return self

    def offset(self, value: int | None) -> EntryQuery:
        if value is not None and value < 0:
            raise SQLBuilderError("offset must be a non-negative integer")
        self._mutable().offset = value
        return self

    # Preparation

    def prepare(self, context: PrepareContext) -> PreparedQuery:
        """Build the prepared query.

        Returns an empty prepared query (`is_empty=True`) when the query can match nothing: a
        handle resolved to no ids, editable entries were requested anonymously, or the prepare
        hook aborted.

        Raises:
            QueryStateError: If called more than once.
            SQLBuilderError: On malformed filter params.
        """

        if self._prepare_called:
            raise QueryStateError("EntryQuery.prepare() may only be called once")
        self._prepare_called = True

        try:
            prepared = self._prepare(context)
        except QueryAbortedError as exc:
            logger.info("entry query aborted reason=%s", exc)
            prepared = PreparedQuery.empty()

        self._prepared = prepared
        return prepared

    def _prepare(self, context: PrepareContext) -> PreparedQuery:
        c = self.criteria

        self._resolve_handles(context.lookup)
        if any(
                f.is_impossible
                for f in (c.section_id, c.type_id, c.author_id, c.author_group_id)
        ):
            raise QueryAbortedError("an id filter can match no rows")

        parts = QueryParts()
        parts.add_join(ENTRIES_JOIN)
        parts.select.extend(ENTRY_COLUMNS)

        if _has_value(c.post_date):
            parts.and_where(parse_date_param(ENTRY_POST_DATE, c.post_date))
        if _has_value(c.expiry_date):
            parts.and_where(parse_date_param(ENTRY_EXPIRY_DATE, c.expiry_date))

        if c.type_id.is_set:
            parts.and_where(parse_param(ENTRY_TYPE_ID, c.type_id.value))

        self._apply_author_params(parts, context)

        parts.and_where(
            scope_editable(
                c.editable,
                identity_context=context.identity_context,
                categories=context.categories,
            )
        )

        self._apply_section_id_param(parts, context.lookup)
        self._apply_ref_param(parts)

        if c.order_by is None:
            if not c.structure_id:
                parts.order_by = DEFAULT_ORDER
        else:
            parts.order_by = c.order_by

        self._apply_base_params(parts, context)

        prepared = parts.freeze(structure_id=c.structure_id)
        logger.debug(
            "entry query prepared joins=%d structure_id=%s order_by=%s",
            len(prepared.joins),
            prepared.structure_id,
            [o.column for o in prepared.order_by],
        )
        return prepared

    def _resolve_handles(self, lookup: LookupExecutor) -> None:
        c = self.criteria

        if c.section is not None:
            c.section_id = resolve_handle(lookup, SECTIONS_TABLE, c.section)
            if c.section_id.is_impossible:
                return
        if c.type is not None:
            c.type_id = resolve_handle(lookup, ENTRY_TYPES_TABLE, c.type)
            if c.type_id.is_impossible:
                return
        if c.author_group is not None:
            c.author_group_id = resolve_handle(lookup, USER_GROUPS_TABLE, c.author_group)

    def _apply_author_params(self, parts: QueryParts, context: PrepareContext) -> None:
        c = self.criteria

        if not context.author_filtering:
            if c.author_id.is_set or c.author_group_id.is_set:
                logger.debug("author filters ignored: author filtering is disabled")
            return

        if c.author_id.is_set:
            parts.and_where(parse_param(ENTRY_AUTHOR_ID, c.author_id.value))

        if c.author_group_id.is_set:
            # Authors in several of the groups still yield each entry once.
            parts.and_where(
                InSubquery(
                    column=ENTRY_AUTHOR_ID,
                    select_column=USER_GROUP_USER_ID,
                    table=USER_GROUPS_USERS_TABLE,
                    where=parse_param(USER_GROUP_ID, c.author_group_id.value),
                )
            )

    def _apply_section_id_param(self, parts: QueryParts, lookup: LookupExecutor) -> None:
        c = self.criteria
        if not c.section_id.is_set:
            return

        if not c.structure_id_set:
            section_id = c.section_id.single_id()
            if section_id is not None:
                c.structure_id = lookup.scalar(
                    LookupQuery(
                        column=STRUCTURE_ID_COLUMN,
                        table=SECTIONS_TABLE,
                        where=Compare(ID_COLUMN, "=", section_id),
                    )
                )
                c.structure_id_set = True

        parts.and_where(parse_param(ENTRY_SECTION_ID, c.section_id.value))

    def _apply_ref_param(self, parts: QueryParts) -> None:
        c = self.criteria
        if not _has_value(c.ref):
            return

        condition, join_sections = parse_refs(c.ref)
        if condition is None:
            return

        parts.and_where(condition)
        if join_sections:
            parts.add_join(SECTIONS_JOIN)

    def _apply_base_params(self, parts: QueryParts, context: PrepareContext) -> None:
        c = self.criteria

        condition = status_condition(c.status, context.now or datetime.now(UTC))
        if condition is not None:
            parts.and_where(condition)

        parts.replace_join(localized_i18n_join(context.locale))

        parts.limit = c.limit
        parts.offset = c.offset

        if context.hook is not None:
            context.hook(parts)
