"""Tests for `EntryQuery` preparation (no database; lookups run in memory)."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from src.auth.identity import Identity
from src.query.entry_query import (
    DEFAULT_ORDER,
    ENTRIES_JOIN,
    SECTIONS_JOIN,
    EntryQuery,
)
from src.query.models import EntryType, Section, SectionType, UserGroup
from src.sql.conditions import (
    FALSE,
    TRUE,
    And,
    Compare,
    Condition,
    InSet,
    InSubquery,
    IsNull,
    Not,
    Or,
    matches,
)
from src.sql.errors import QueryAbortedError, QueryStateError, SQLBuilderError
from src.sql.params import normalize_datetime
from src.sql.statements import OrderBy, QueryParts, localized_i18n_join
from tests.fakes import REFERENCE_ROWS, InMemoryLookup, make_context

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

POST_DATE = "entries.post_date"
SECTION_ID = "entries.section_id"
TYPE_ID = "entries.type_id"
AUTHOR_ID = "entries.author_id"
GROUP_ID = "user_groups_users.group_id"
MEMBER_ID = "user_groups_users.user_id"
SLUG = "elements_i18n.slug"


def _columns(cond: Condition) -> set[str]:
    if isinstance(cond, (And, Or)):
        return set().union(*(_columns(child) for child in cond.children))
    if isinstance(cond, Not):
        return _columns(cond.child)
    if isinstance(cond, InSubquery):
        return {cond.column} | _columns(cond.where)
    return {cond.column} if hasattr(cond, "column") else set()


def _query() -> EntryQuery:
    # Status filtering is covered separately; most tests look at one condition at a time.
    return EntryQuery().status(None)


def _group_filter(where: Condition) -> InSubquery:
    return InSubquery(AUTHOR_ID, MEMBER_ID, "user_groups_users", where)


def test_default_query_selects_live_entries_newest_first() -> None:
    prepared = EntryQuery().prepare(make_context(now=NOW))

    assert not prepared.is_empty
    assert prepared.joins[-1] == ENTRIES_JOIN
    assert "entries.post_date" in prepared.select
    assert prepared.order_by == DEFAULT_ORDER

    live = {
        "elements.enabled": True,
        POST_DATE: normalize_datetime(datetime(2024, 1, 1)),
        "entries.expiry_date": None,
    }
    assert matches(prepared.where, live)
    assert not matches(prepared.where, {**live, "elements.enabled": False})
    assert not matches(prepared.where, {**live, POST_DATE: normalize_datetime(date(2025, 1, 1))})


def test_impossible_section_handle_short_circuits() -> None:
    lookup = InMemoryLookup()
    query = _query().section("missing").type("article").author_group("editors")

    prepared = query.prepare(make_context(lookup=lookup))

    assert prepared.is_empty
    assert prepared.where == FALSE
    assert prepared.joins == ()
    # Later handles are never resolved once one is impossible.
    assert lookup.queries_for("entry_types") == []
    assert lookup.queries_for("user_groups") == []


@pytest.mark.parametrize(
    "build",
    [
        lambda q: q.section_id(False),
        lambda q: q.type_id([]),
        lambda q: q.author_id([]),
        lambda q: q.author_group_id(False),
        lambda q: q.type("missing"),
    ],
)
def test_impossible_id_filters_yield_empty_query(build) -> None:
    prepared = build(_query()).prepare(make_context())
    assert prepared.is_empty


def test_section_and_type_handles_resolve_to_ids() -> None:
    query = _query().section("news").type(["article", "link"])

    prepared = query.prepare(make_context())

    assert Compare(SECTION_ID, "=", 1) in prepared.where.children
    assert InSet(TYPE_ID, (10, 11)) in prepared.where.children


def test_boolean_looking_handles_and_refs_stay_text() -> None:
    rows = {
        **REFERENCE_ROWS,
        "sections": [*REFERENCE_ROWS["sections"], {"id": 4, "handle": "false"}],
    }

    prepared = _query().section("false").ref("true").prepare(
        make_context(lookup=InMemoryLookup(rows))
    )

    assert not prepared.is_empty
    assert matches(prepared.where, {SECTION_ID: 4, SLUG: "true"})
    assert not matches(prepared.where, {SECTION_ID: 4, SLUG: "false"})


def test_translations_join_is_bound_to_one_locale() -> None:
    prepared = _query().prepare(make_context())

    assert prepared.joins[0] == localized_i18n_join("en_us")
    assert prepared.joins[0].condition == Compare("elements_i18n.locale", "=", "en_us")


def test_domain_objects_skip_handle_lookups() -> None:
    lookup = InMemoryLookup()
    query = (
        _query()
        .section(Section(id=1, handle="news"))
        .type(EntryType(id=10, handle="article"))
        .author_group(UserGroup(id=100, handle="editors"))
    )

    prepared = query.prepare(make_context(lookup=lookup))

    assert lookup.queries == []
    assert Compare(TYPE_ID, "=", 10) in prepared.where.children
    assert _group_filter(Compare(GROUP_ID, "=", 100)) in prepared.where.children


def test_before_and_after_compose_in_either_order() -> None:
    start, end = date(2020, 1, 1), date(2021, 1, 1)
    first = _query().after(start).before(end).prepare(make_context())
    second = _query().before(end).after(start).prepare(make_context())

    for prepared in (first, second):
        assert matches(prepared.where, {POST_DATE: normalize_datetime(start)})
        assert matches(prepared.where, {POST_DATE: "2020-12-31T23:59:59+00:00"})
        assert not matches(prepared.where, {POST_DATE: normalize_datetime(end)})
        assert not matches(prepared.where, {POST_DATE: "2019-12-31T23:59:59+00:00"})


def test_post_date_replaces_previous_bounds() -> None:
    query = _query().after(date(2020, 1, 1)).post_date(">=2022-01-01")

    prepared = query.prepare(make_context())

    assert prepared.where == Compare(POST_DATE, ">=", "2022-01-01T00:00:00+00:00")


def test_expiry_date_empty_marker() -> None:
    prepared = _query().expiry_date(":empty:").prepare(make_context())
    assert prepared.where == IsNull("entries.expiry_date")


def test_editable_without_identity_is_empty() -> None:
    prepared = _query().editable().prepare(make_context())
    assert prepared.is_empty


def test_editable_scopes_to_identity_sections() -> None:
    identity = Identity(id=42, permissions={"editEntries:1"})

    prepared = _query().editable().prepare(make_context(identity=identity))

    assert matches(prepared.where, {SECTION_ID: 1, AUTHOR_ID: 42})
    assert not matches(prepared.where, {SECTION_ID: 1, AUTHOR_ID: 7})
    assert not matches(prepared.where, {SECTION_ID: 2, AUTHOR_ID: 42})


def test_single_section_id_looks_up_structure_once() -> None:
    lookup = InMemoryLookup()

    prepared = _query().section("pages").prepare(make_context(lookup=lookup))

    assert len(lookup.queries_for("sections", "structure_id")) == 1
    assert prepared.structure_id == 20
    # Structured sections keep their structure order unless an order is requested.
    assert prepared.order_by == ()


@pytest.mark.parametrize("section_id", [2, "2", [2], ["2"]])
def test_single_section_id_value_looks_up_structure(section_id: object) -> None:
    lookup = InMemoryLookup()

    prepared = _query().section_id(section_id).prepare(make_context(lookup=lookup))

    assert len(lookup.queries_for("sections", "structure_id")) == 1
    assert prepared.structure_id == 20


def test_multiple_section_ids_skip_structure_lookup() -> None:
    lookup = InMemoryLookup()

    prepared = _query().section_id([1, 2]).prepare(make_context(lookup=lookup))

    assert lookup.queries == []
    assert prepared.structure_id is None
    assert prepared.order_by == DEFAULT_ORDER
    assert prepared.where == InSet(SECTION_ID, (1, 2))


def test_explicit_structure_id_wins() -> None:
    lookup = InMemoryLookup()

    prepared = _query().structure_id(99).section_id(2).prepare(make_context(lookup=lookup))

    assert lookup.queries == []
    assert prepared.structure_id == 99


def test_section_object_sets_structure_unless_already_set() -> None:
    pages = Section(id=2, handle="pages", type=SectionType.structure, structure_id=20)

    from_object = _query().section(pages).prepare(make_context())
    explicit = _query().structure_id(5).section(pages).prepare(make_context())

    assert from_object.structure_id == 20
    assert explicit.structure_id == 5


def test_explicit_order_by_is_kept() -> None:
    prepared = _query().section("pages").order_by("slug, post_date desc").prepare(make_context())

    assert prepared.order_by == (
        OrderBy("elements_i18n.slug"),
        OrderBy(POST_DATE, descending=True),
    )


def test_invalid_order_by_is_rejected() -> None:
    with pytest.raises(SQLBuilderError):
        _query().order_by("title; DROP TABLE entries")


def test_author_filters() -> None:
    prepared = _query().author_id(42).author_group("editors").prepare(make_context())

    assert [j.alias for j in prepared.joins] == ["elements_i18n", "entries"]
    assert Compare(AUTHOR_ID, "=", 42) in prepared.where.children
    assert _group_filter(Compare(GROUP_ID, "=", 100)) in prepared.where.children


def test_author_in_several_groups_matches_once() -> None:
    prepared = _query().author_group(["editors", "writers"]).prepare(make_context())
    memberships = {
        "user_groups_users": [
            {GROUP_ID: 100, MEMBER_ID: 7},
            {GROUP_ID: 101, MEMBER_ID: 7},
            {GROUP_ID: 101, MEMBER_ID: 8},
        ]
    }

    assert prepared.where == _group_filter(InSet(GROUP_ID, (100, 101)))
    assert matches(prepared.where, {AUTHOR_ID: 7}, memberships)
    assert matches(prepared.where, {AUTHOR_ID: 8}, memberships)
    assert not matches(prepared.where, {AUTHOR_ID: 9}, memberships)


def test_author_filters_ignored_without_capability() -> None:
    query = _query().author_id(42).author_group("editors")

    prepared = query.prepare(make_context(author_filtering=False))

    assert [j.alias for j in prepared.joins] == ["elements_i18n", "entries"]
    assert not _columns(prepared.where) & {AUTHOR_ID, GROUP_ID}


def test_refs_join_sections_once() -> None:
    prepared = _query().ref(["news/hello", "pages/about"]).prepare(make_context())

    assert prepared.joins.count(SECTIONS_JOIN) == 1
    assert matches(prepared.where, {"sections.handle": "news", "elements_i18n.slug": "hello"})


def test_slug_ref_needs_no_sections_join() -> None:
    prepared = _query().ref("hello").prepare(make_context())

    assert SECTIONS_JOIN not in prepared.joins
    assert prepared.where == Compare("elements_i18n.slug", "=", "hello")


def test_blank_ref_adds_nothing() -> None:
    prepared = _query().ref("/").prepare(make_context())
    assert prepared.where == TRUE


def test_status_list_and_unknown_status() -> None:
    prepared = EntryQuery().status(["pending", "disabled"]).prepare(make_context(now=NOW))

    assert matches(prepared.where, {"elements.enabled": False})
    assert matches(
        prepared.where,
        {"elements.enabled": True, POST_DATE: normalize_datetime(date(2025, 1, 1))},
    )

    with pytest.raises(SQLBuilderError):
        EntryQuery().status("archived").prepare(make_context(now=NOW))


def test_locale_limit_and_offset() -> None:
    prepared = _query().limit(10).offset(20).prepare(make_context(locale="de"))

    assert prepared.joins[0] == localized_i18n_join("de")
    assert prepared.where == TRUE
    assert prepared.limit == 10
    assert prepared.offset == 20


def test_negative_limit_is_rejected() -> None:
    with pytest.raises(SQLBuilderError):
        EntryQuery().limit(-1)
    with pytest.raises(SQLBuilderError):
        EntryQuery().offset(-5)


def test_hook_can_extend_or_abort() -> None:
    def restrict(parts: QueryParts) -> None:
        parts.and_where(Compare("elements.id", "=", 7))

    def abort(parts: QueryParts) -> None:
        raise QueryAbortedError("hook says no")

    extended = _query().prepare(make_context(hook=restrict))
    aborted = _query().prepare(make_context(hook=abort))

    assert extended.where == Compare("elements.id", "=", 7)
    assert aborted.is_empty


def test_prepare_runs_once() -> None:
    query = _query()
    prepared = query.prepare(make_context())

    assert query.prepared is prepared
    with pytest.raises(QueryStateError):
        query.prepare(make_context())
    with pytest.raises(QueryStateError):
        query.section("news")


def test_setters_chain() -> None:
    query = EntryQuery()
    assert query.section("news").type("article").editable(False).limit(5) is query
