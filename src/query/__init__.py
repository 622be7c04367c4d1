"""Entry query construction.

The query layer accumulates entry filters on an `EntryQuery` and, on `prepare()`, resolves handles,
applies permission scoping and reference parsing, and produces a `PreparedQuery` for execution.
"""
