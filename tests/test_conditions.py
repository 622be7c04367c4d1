"""Tests for predicate trees: combinators, SQL compilation, and in-memory evaluation."""

from __future__ import annotations

import pytest

from src.sql.conditions import (
    FALSE,
    TRUE,
    And,
    Compare,
    InSet,
    InSubquery,
    IsNull,
    Not,
    Or,
    and_,
    compile_condition,
    matches,
    negate,
    or_,
)
from src.sql.errors import SQLBuilderError


def test_and_drops_true_and_flattens() -> None:
    a = Compare("entries.type_id", "=", 1)
    b = Compare("entries.author_id", "=", 2)
    c = Compare("entries.section_id", "=", 3)

    assert and_(TRUE, a) == a
    assert and_() == TRUE
    assert and_(a, and_(b, c)) == And((a, b, c))
    assert and_(a, FALSE, b) == FALSE


def test_or_drops_false_and_short_circuits_on_true() -> None:
    a = Compare("entries.type_id", "=", 1)
    b = Compare("entries.type_id", "=", 2)

    assert or_(FALSE, a) == a
    assert or_() == FALSE
    assert or_(a, TRUE) == TRUE
    assert or_(a, b) == Or((a, b))


def test_negate_folds_into_leaves() -> None:
    assert negate(Compare("x", "=", 1)) == Compare("x", "!=", 1)
    assert negate(InSet("x", (1, 2))) == InSet("x", (1, 2), negated=True)
    assert negate(IsNull("x")) == IsNull("x", negated=True)
    assert negate(TRUE) == FALSE

    ranged = Compare("x", ">", 1)
    assert negate(ranged) == Not(ranged)
    assert negate(Not(ranged)) == ranged


def test_compile_nested_tree_is_parameterized() -> None:
    cond = and_(
        InSet("entries.section_id", (1, 2)),
        or_(
            Compare("entries.section_id", "!=", 1),
            Compare("entries.author_id", "=", 7),
        ),
    )
    sql, params = compile_condition(cond)

    assert sql == (
        "(entries.section_id IN (%s, %s) AND "
        "(entries.section_id <> %s OR entries.author_id = %s))"
    )
    assert params == (1, 2, 1, 7)
    assert sql.count("%s") == len(params)


def test_compile_empty_sets_and_nulls() -> None:
    assert compile_condition(InSet("x", ())) == ("FALSE", ())
    assert compile_condition(InSet("x", (), negated=True)) == ("TRUE", ())
    assert compile_condition(Compare("x", "=", None)) == ("x IS NULL", ())
    assert compile_condition(IsNull("x", negated=True)) == ("x IS NOT NULL", ())
    assert compile_condition(Not(Compare("x", "<", 3))) == ("NOT (x < %s)", (3,))


def test_compile_rejects_non_identifier_columns() -> None:
    with pytest.raises(SQLBuilderError):
        compile_condition(Compare("x; DROP TABLE entries", "=", 1))


def test_matches_evaluates_rows() -> None:
    cond = and_(
        Compare("v", ">=", "2020-01-01T00:00:00+00:00"),
        Compare("v", "<", "2021-01-01T00:00:00+00:00"),
    )

    assert matches(cond, {"v": "2020-06-15T00:00:00+00:00"})
    assert not matches(cond, {"v": "2021-01-01T00:00:00+00:00"})
    assert not matches(cond, {"v": None})
    assert matches(IsNull("v"), {})
    assert matches(InSet("v", (1, 2), negated=True), {"v": 3})


MEMBERS = InSubquery(
    "entries.author_id",
    "user_groups_users.user_id",
    "user_groups_users",
    InSet("user_groups_users.group_id", (100, 101)),
)


def test_compile_subquery() -> None:
    sql, params = compile_condition(and_(Compare("entries.type_id", "=", 1), MEMBERS))

    assert sql == (
        "(entries.type_id = %s AND entries.author_id IN (SELECT user_groups_users.user_id "
        "FROM user_groups_users WHERE user_groups_users.group_id IN (%s, %s)))"
    )
    assert params == (1, 100, 101)
    assert compile_condition(negate(MEMBERS))[0].startswith("entries.author_id NOT IN (SELECT")
    assert compile_condition(InSubquery("a.id", "b.id", "b")) == (
        "a.id IN (SELECT b.id FROM b)",
        (),
    )


def test_compile_subquery_rejects_non_identifier_tables() -> None:
    with pytest.raises(SQLBuilderError):
        compile_condition(InSubquery("a.id", "b.id", "b; DROP TABLE entries"))


def test_matches_subquery_counts_each_outer_row_once() -> None:
    tables = {
        "user_groups_users": [
            {"user_groups_users.group_id": 100, "user_groups_users.user_id": 1},
            {"user_groups_users.group_id": 101, "user_groups_users.user_id": 1},
            {"user_groups_users.group_id": 102, "user_groups_users.user_id": 2},
        ]
    }
    rows = [{"entries.author_id": 1}, {"entries.author_id": 2}, {"entries.author_id": None}]

    assert [r for r in rows if matches(MEMBERS, r, tables)] == [{"entries.author_id": 1}]
    assert [r for r in rows if matches(negate(MEMBERS), r, tables)] == [{"entries.author_id": 2}]


def test_matches_subquery_needs_tables() -> None:
    with pytest.raises(SQLBuilderError):
        matches(MEMBERS, {"entries.author_id": 1})
