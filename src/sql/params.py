"""Filter parameter parsing.

Query params arrive as scalars, sequences, explicit `Comparison` values, or strings carrying a
leading comparison operator (`'>=2020-01-01'`, `'not news'`). This module turns them into
condition trees:

    - one plain value                -> `column = v`
    - several plain values           -> `column IN (...)`
    - negated value(s)               -> `column <> v` / `column NOT IN (...)`
    - operator-prefixed values       -> ANDed comparisons (e.g. a closed-open range)

A sequence may start with a glue word (`'and'`, `'or'`, `'not'`) that overrides the default
combination.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence, Set
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any, Literal

import dateparser
from dateparser.conf import Settings as DateparserSettings

from src.sql.columns import BOOLEAN_COLUMNS
from src.sql.conditions import (
    FALSE,
    TRUE,
    Compare,
    Condition,
    InSet,
    IsNull,
    Operator,
    and_,
    negate,
    or_,
)
from src.sql.errors import MalformedPredicateError

Glue = Literal["and", "or", "not"]

_GLUE_WORDS: frozenset[str] = frozenset({"and", "or", "not"})

# Longest operators first so `<=` is not read as `<` followed by `=5`.
_PREFIX_OPERATORS: tuple[tuple[str, Operator], ...] = (
    ("<=", "<="),
    (">=", ">="),
    ("<>", "!="),
    ("!=", "!="),
    ("<", "<"),
    (">", ">"),
    ("=", "="),
)
_OPERATOR_CHARS = frozenset("<>=!")

EMPTY = ":empty:"
NOT_EMPTY = ":notempty:"

_DATEPARSER_SETTINGS = DateparserSettings().replace(
    DATE_ORDER="YMD",
    TIMEZONE="UTC",
    TO_TIMEZONE="UTC",
    RETURN_AS_TIMEZONE_AWARE=True,
)


@dataclass(frozen=True)
class Comparison:
    """A value tagged with the operator it must be compared with."""

    op: Operator
    value: Any


def eq(value: Any) -> Comparison:
    return Comparison("=", value)


def ne(value: Any) -> Comparison:
    return Comparison("!=", value)


def lt(value: Any) -> Comparison:
    return Comparison("<", value)


def lte(value: Any) -> Comparison:
    return Comparison("<=", value)


def gt(value: Any) -> Comparison:
    return Comparison(">", value)


def gte(value: Any) -> Comparison:
    return Comparison(">=", value)


def to_list(value: Any) -> list[Any]:
    """Normalize a param value into a list of raw values."""

    if value is None:
        return []
    if isinstance(value, (str, bytes, Comparison)):
        return [value]
    if isinstance(value, Set):
        return sorted(value, key=repr)
    if isinstance(value, (Sequence, Iterable)):
        return list(value)
    return [value]


def _storage_value(value: Any, column: str | None) -> Any:
    if column in BOOLEAN_COLUMNS and isinstance(value, str):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return value


def parse_comparison(raw: Any, column: str | None = None) -> Comparison:
    """Parse a raw value (possibly operator-prefixed) into a `Comparison`.

    `"true"` and `"false"` become booleans only when `column` is a boolean column.

    Raises:
        MalformedPredicateError: If the value starts with an operator that is not recognized.
    """

    if isinstance(raw, Comparison):
        return raw
    if not isinstance(raw, str):
        return Comparison("=", raw)

    text = raw
    if text[:4].lower() == "not ":
        rest = text[4:].lstrip()
        if not rest:
            raise MalformedPredicateError(f"Missing value after 'not' in {raw!r}")
        inner = parse_comparison(rest, column)
        if inner.op != "=":
            raise MalformedPredicateError(f"Cannot negate comparison {raw!r}")
        return Comparison("!=", inner.value)

    for prefix, op in _PREFIX_OPERATORS:
        if text.startswith(prefix):
            rest = text[len(prefix):]
            if not rest or rest[0] in _OPERATOR_CHARS:
                raise MalformedPredicateError(f"Unrecognized comparison operator in {raw!r}")
            return Comparison(op, _storage_value(rest, column))

    if text and text[0] in _OPERATOR_CHARS:
        raise MalformedPredicateError(f"Unrecognized comparison operator in {raw!r}")

    if text.lower() == NOT_EMPTY:
        return Comparison("!=", EMPTY)
    return Comparison("=", _storage_value(text, column))


def _split_glue(value: Any) -> tuple[Glue | None, list[Any]]:
    """Split a leading glue word off a sequence param (scalars never carry glue)."""

    values = to_list(value)
    if isinstance(value, (str, Comparison)):
        return None, values
    if values and isinstance(values[0], str) and values[0].lower() in _GLUE_WORDS:
        glue: Glue = values[0].lower()  # type: ignore[assignment]
        return glue, values[1:]
    return None, values


def _leaf(column: str, comparison: Comparison) -> Condition:
    if comparison.value == EMPTY:
        return IsNull(column, negated=comparison.op == "!=")
    return Compare(column, comparison.op, comparison.value)


def _equalities(column: str, comparisons: list[Comparison]) -> Condition:
    has_null = any(c.value == EMPTY for c in comparisons)
    values = tuple(c.value for c in comparisons if c.value != EMPTY)

    parts: list[Condition] = [IsNull(column)] if has_null else []
    if len(values) == 1:
        parts.append(Compare(column, "=", values[0]))
    elif values:
        parts.append(InSet(column, values))
    return or_(*parts)


def combine(column: str, comparisons: list[Comparison], glue: Glue | None = None) -> Condition:
    """Combine parsed comparisons on one column into a single condition.

    No comparisons match nothing, so a bare `not` glue (`["not"]`) matches everything.
    """

    if not comparisons:
        return TRUE if glue == "not" else FALSE

    if glue == "and":
        return and_(*(_leaf(column, c) for c in comparisons))

    if glue in ("or", "not"):
        eqs = [c for c in comparisons if c.op == "="]
        others = [_leaf(column, c) for c in comparisons if c.op != "="]
        cond = or_(_equalities(column, eqs) if eqs else FALSE, *others)
        return negate(cond) if glue == "not" else cond

    eqs = [c for c in comparisons if c.op == "="]
    nes = [c for c in comparisons if c.op == "!="]
    ranges = [c for c in comparisons if c.op not in ("=", "!=")]

    parts: list[Condition] = []
    if eqs:
        parts.append(_equalities(column, eqs))
    if nes:
        # `not a`, `not b` -> NOT IN (a, b)
        parts.append(negate(_equalities(column, [eq(c.value) for c in nes])))
    parts.extend(_leaf(column, c) for c in ranges)
    return and_(*parts)


def parse_param(column: str, value: Any) -> Condition:
    """Build a condition for `column` from a raw filter param.

    `None` means "no filter" (TRUE); an empty sequence matches nothing (FALSE).
    """

    if value is None:
        return TRUE

    glue, values = _split_glue(value)
    comparisons = [parse_comparison(v, column) for v in values]
    return combine(column, comparisons, glue)


def normalize_datetime(value: date | datetime) -> str:
    """Serialize a date/datetime into canonical UTC ISO 8601 (`YYYY-MM-DDTHH:MM:SS+00:00`).

    Dates and naive datetimes are taken as UTC.
    """

    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min, tzinfo=UTC)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return value.replace(microsecond=0).isoformat()


def _parse_date_string(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    parsed = dateparser.parse(text, settings=_DATEPARSER_SETTINGS)
    if parsed is None:
        raise MalformedPredicateError(f"Unrecognized date value: {text!r}")
    return parsed


def _date_comparison(raw: Any) -> Comparison:
    if isinstance(raw, (date, datetime)):
        return Comparison("=", normalize_datetime(raw))

    comparison = parse_comparison(raw)
    value = comparison.value
    if isinstance(value, (date, datetime)):
        return Comparison(comparison.op, normalize_datetime(value))
    if isinstance(value, str) and value != EMPTY:
        return Comparison(comparison.op, normalize_datetime(_parse_date_string(value.strip())))
    return comparison


def parse_date_param(column: str, value: Any) -> Condition:
    """Like `parse_param`, but dates/datetimes/date strings are normalized to UTC ISO 8601.

    Canonical strings keep lexical and chronological ordering consistent across both
    representations.
    """

    if value is None:
        return TRUE

    glue, values = _split_glue(value)
    comparisons = [_date_comparison(v) for v in values]
    return combine(column, comparisons, glue)
