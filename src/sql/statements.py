"""Statement shapes shared by the query layer and the SQL renderer.

`QueryParts` is the mutable working state filled in during `EntryQuery.prepare()`; it is frozen
into a `PreparedQuery`, which is what the executor consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

from src.sql.columns import (
    BASE_ELEMENT_COLUMNS,
    ELEMENT_LOCALE,
    ELEMENTS_I18N_TABLE,
    ELEMENTS_TABLE,
    ORDERABLE_COLUMNS,
)
from src.sql.conditions import FALSE, TRUE, Compare, Condition, and_
from src.sql.errors import SQLBuilderError

JoinKind = Literal["INNER", "LEFT"]


@dataclass(frozen=True)
class Join:
    """A join against an allowlisted table.

    `on` is a trusted SQL fragment built from column constants, never from caller input. Values
    the join depends on go into `condition`, which is ANDed into the ON clause as bound params.
    """

    table: str
    alias: str
    on: str
    kind: JoinKind = "INNER"
    condition: Condition = TRUE


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class LookupQuery:
    """`SELECT <column> FROM <table> WHERE <where>` against a reference table."""

    column: str
    table: str
    where: Condition = TRUE


ELEMENTS_I18N_JOIN = Join(
    table=ELEMENTS_I18N_TABLE,
    alias=ELEMENTS_I18N_TABLE,
    on="elements_i18n.element_id = elements.id",
)


def localized_i18n_join(locale: str) -> Join:
    """The translations join restricted to one locale, so each element yields one row."""

    return replace(ELEMENTS_I18N_JOIN, condition=Compare(ELEMENT_LOCALE, "=", locale))


def parse_order_by(text: str) -> tuple[OrderBy, ...]:
    """Parse an ordering directive such as `"post_date desc, id"`.

    Raises:
        SQLBuilderError: If a column is not orderable or a direction is not `asc`/`desc`.
    """

    result: list[OrderBy] = []
    for item in text.split(","):
        tokens = item.split()
        if not tokens:
            continue
        if len(tokens) > 2:
            raise SQLBuilderError(f"Invalid order_by item: {item.strip()!r}")

        name = tokens[0].lower()
        column = ORDERABLE_COLUMNS.get(name)
        if column is None:
            raise SQLBuilderError(f"Unsupported order_by column: {name!r}")

        direction = tokens[1].lower() if len(tokens) == 2 else "asc"
        if direction not in ("asc", "desc"):
            raise SQLBuilderError(f"Unsupported order_by direction: {direction!r}")

        result.append(OrderBy(column=column, descending=direction == "desc"))

    if not result:
        raise SQLBuilderError("order_by must name at least one column")
    return tuple(result)


@dataclass(frozen=True)
class PreparedQuery:
    """A fully prepared entry query.

    When `is_empty` is true the query is provably unsatisfiable and must not be executed: the
    executor returns zero rows without issuing SQL.
    """

    select: tuple[str, ...] = ()
    from_table: str = ELEMENTS_TABLE
    joins: tuple[Join, ...] = ()
    where: Condition = TRUE
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = None
    offset: int | None = None
    structure_id: int | None = None
    is_empty: bool = False

    @classmethod
    def empty(cls) -> PreparedQuery:
        return cls(where=FALSE, is_empty=True)


@dataclass
class QueryParts:
    """Mutable query state assembled during preparation (and handed to prepare hooks)."""

    select: list[str] = field(default_factory=lambda: list(BASE_ELEMENT_COLUMNS))
    from_table: str = ELEMENTS_TABLE
    joins: list[Join] = field(default_factory=lambda: [ELEMENTS_I18N_JOIN])
    where: list[Condition] = field(default_factory=list)
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = None
    offset: int | None = None

    def add_join(self, join: Join) -> None:
        """Add a join unless one with the same alias is already present."""

        if any(existing.alias == join.alias for existing in self.joins):
            return
        self.joins.append(join)

    def replace_join(self, join: Join) -> None:
        """Replace the join with the same alias, or add it if there is none."""

        for index, existing in enumerate(self.joins):
            if existing.alias == join.alias:
                self.joins[index] = join
                return
        self.joins.append(join)

    def and_where(self, condition: Condition) -> None:
        if condition != TRUE:
            self.where.append(condition)

    def freeze(self, *, structure_id: int | None) -> PreparedQuery:
        return PreparedQuery(
            select=tuple(self.select),
            from_table=self.from_table,
            joins=tuple(self.joins),
            where=and_(*self.where),
            order_by=self.order_by,
            limit=self.limit,
            offset=self.offset,
            structure_id=structure_id,
        )
