"""Domain models (Pydantic) and the tri-state id filter."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class SectionType(StrEnum):
    """How entries are organized inside a section."""

    single = "single"
    channel = "channel"
    structure = "structure"


class Section(BaseModel):
    """A category grouping entries, optionally ordered by a structure."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: int
    handle: str
    type: SectionType = SectionType.channel
    structure_id: int | None = None


class EntryType(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: int
    handle: str
    section_id: int | None = None


class UserGroup(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: int
    handle: str


class FilterState(StrEnum):
    unset = "unset"
    value = "value"
    impossible = "impossible"


@dataclass(frozen=True)
class IdFilter:
    """An id filter that is unset, holds a param value, or can match nothing.

    `IdFilter.of(False)` and `IdFilter.of([])` are impossible: the query they belong to is
    provably empty.
    """

    state: FilterState = FilterState.unset
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> IdFilter:
        if value is None:
            return cls()
        if value is False:
            return cls.impossible()
        if isinstance(value, (list, tuple, set, frozenset)):
            if not value:
                return cls.impossible()
            return cls(FilterState.value, list(value))
        return cls(FilterState.value, value)

    @classmethod
    def impossible(cls) -> IdFilter:
        return cls(FilterState.impossible)

    @property
    def is_set(self) -> bool:
        return self.state == FilterState.value

    @property
    def is_impossible(self) -> bool:
        return self.state == FilterState.impossible

    def single_id(self) -> int | None:
        """Return the id if the filter holds exactly one plain identifier."""

        if not self.is_set:
            return None

        value = self.value
        if isinstance(value, Sequence) and not isinstance(value, str):
            if len(value) != 1:
                return None
            value = value[0]

        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return None
