"""Tests for handle-to-id resolution."""

from __future__ import annotations

import pytest

from src.query.handles import resolve_handle
from src.query.models import FilterState, IdFilter, Section, UserGroup
from src.sql.conditions import Compare, InSet
from src.sql.errors import MalformedPredicateError, SQLBuilderError
from tests.fakes import InMemoryLookup


def test_single_handle_resolves_to_id_list() -> None:
    lookup = InMemoryLookup()

    result = resolve_handle(lookup, "sections", "news")

    assert result == IdFilter(FilterState.value, [1])
    assert result.single_id() == 1
    (query,) = lookup.queries
    assert query.column == "id"
    assert query.table == "sections"
    assert query.where == Compare("handle", "=", "news")


def test_multiple_handles_resolve_in_one_lookup() -> None:
    lookup = InMemoryLookup()

    result = resolve_handle(lookup, "entry_types", ["article", "link"])

    assert result.value == [10, 11]
    assert result.single_id() is None
    assert lookup.queries[0].where == InSet("handle", ("article", "link"))


def test_negated_handle_matches_everything_else() -> None:
    result = resolve_handle(InMemoryLookup(), "user_groups", "not editors")
    assert result.value == [101]


def test_unknown_handle_is_impossible() -> None:
    result = resolve_handle(InMemoryLookup(), "sections", ["missing", "gone"])

    assert result.is_impossible
    assert not result.is_set


def test_resolved_objects_skip_the_lookup() -> None:
    lookup = InMemoryLookup()

    section = resolve_handle(lookup, "sections", Section(id=7, handle="blog"))
    groups = resolve_handle(
        lookup,
        "user_groups",
        [UserGroup(id=1, handle="a"), UserGroup(id=2, handle="b")],
    )

    assert section.value == [7]
    assert groups.value == [1, 2]
    assert lookup.queries == []


def test_malformed_handle_surfaces_as_build_error() -> None:
    with pytest.raises(MalformedPredicateError):
        resolve_handle(InMemoryLookup(), "sections", "=>news")


def test_non_handle_table_is_rejected() -> None:
    with pytest.raises(SQLBuilderError):
        resolve_handle(InMemoryLookup(), "entries", "news")


@pytest.mark.parametrize(
    ("value", "state"),
    [
        (None, FilterState.unset),
        (False, FilterState.impossible),
        ([], FilterState.impossible),
        (5, FilterState.value),
        ([5, 6], FilterState.value),
    ],
)
def test_id_filter_states(value: object, state: FilterState) -> None:
    assert IdFilter.of(value).state == state


def test_id_filter_single_id() -> None:
    assert IdFilter.of(5).single_id() == 5
    assert IdFilter.of("5").single_id() == 5
    assert IdFilter.of([5]).single_id() == 5
    assert IdFilter.of([5, 6]).single_id() is None
    assert IdFilter.of("not 5").single_id() is None
    assert IdFilter.of(True).single_id() is None
