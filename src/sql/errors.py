"""Errors raised while building and preparing entry queries."""

from __future__ import annotations


class SQLBuilderError(ValueError):
    """Raised when query input cannot be converted into deterministic SQL."""


class MalformedPredicateError(SQLBuilderError):
    """Raised when a comparison value carries an operator that cannot be parsed."""


class QueryAbortedError(Exception):
    """Raised during preparation when the query can provably match no rows.

    This is not a fault: `EntryQuery.prepare()` catches it and returns an empty prepared query.
    """


class PermissionDeniedError(QueryAbortedError):
    """Raised when editable entries are requested without an authenticated identity."""


class QueryStateError(RuntimeError):
    """Raised when an entry query is mutated or prepared after it was already prepared."""
