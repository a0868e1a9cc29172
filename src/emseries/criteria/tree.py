"""Criteria expression tree: boolean predicates over a single record.

Leaves test the timestamp (Start, End), the tag set (Tags) or nothing at
all (Everything). And/Or combine two subtrees with Python's own
short-circuit rules, so the right side is never evaluated when the left
side already decides the answer.
Start and End compare UTC instants, never wall-clock readings.

Every node is a frozen dataclass. apply() is a pure function of the
record, so one tree can be shared across threads and reused across
searches.

Usage:
    c = start_at(t0) & end_at(t1, inclusive=False) & has_tags({"ride"})
    series.search(c)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import reduce

from emseries.domain.errors import InvalidCriteria
from emseries.domain.record import Record
from emseries.domain.timestamps import ensure_aware, to_utc
from emseries.domain.types import Tag


class TagMode(Enum):
    ALL = "all"
    ANY = "any"


class Criteria(ABC):
    """A predicate over one record."""

    __slots__ = ()

    @abstractmethod
    def apply(self, record: Record) -> bool:
        ...

    def __and__(self, other: Criteria) -> Criteria:
        return And(self, other)

    def __or__(self, other: Criteria) -> Criteria:
        return Or(self, other)


def ensure_criteria(value: object) -> Criteria:
    """Return value if it is a Criteria, else raise InvalidCriteria."""
    if not isinstance(value, Criteria):
        raise InvalidCriteria(
            f"expected a Criteria, got {type(value).__name__}; "
            "use everything() to match all records"
        )
    return value


def _checked_time(value: object) -> datetime:
    if not isinstance(value, datetime):
        raise InvalidCriteria(f"time bound must be a datetime, got {type(value).__name__}")
    return ensure_aware(value)


@dataclass(frozen=True, slots=True)
class Everything(Criteria):
    """Matches every record."""

    def apply(self, record: Record) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Start(Criteria):
    time: datetime
    inclusive: bool = True
    _instant: datetime = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", _checked_time(self.time))
        object.__setattr__(self, "_instant", to_utc(self.time))

    def apply(self, record: Record) -> bool:
        ts = to_utc(record.timestamp)
        if self.inclusive:
            return ts >= self._instant
        return ts > self._instant


@dataclass(frozen=True, slots=True)
class End(Criteria):
    time: datetime
    inclusive: bool = True
    _instant: datetime = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", _checked_time(self.time))
        object.__setattr__(self, "_instant", to_utc(self.time))

    def apply(self, record: Record) -> bool:
        ts = to_utc(record.timestamp)
        if self.inclusive:
            return ts <= self._instant
        return ts < self._instant


@dataclass(frozen=True, slots=True)
class Tags(Criteria):
    """Tag match.

    ALL: every listed tag must be on the record (no tags listed = match).
    ANY: at least one listed tag must be on the record (no tags = no match).
    """
    tags: frozenset[Tag] = field(default_factory=frozenset)
    mode: TagMode = TagMode.ALL

    def __post_init__(self) -> None:
        tags = self.tags
        if isinstance(tags, str):
            tags = (tags,)
        try:
            object.__setattr__(self, "tags", frozenset(tags))
        except TypeError as exc:
            raise InvalidCriteria(f"tags must be an iterable of strings, got {tags!r}") from exc
        if not isinstance(self.mode, TagMode):
            try:
                object.__setattr__(self, "mode", TagMode(str(self.mode).lower()))
            except ValueError as exc:
                raise InvalidCriteria(f"unknown tag mode {self.mode!r}") from exc

    def apply(self, record: Record) -> bool:
        have = record.tags
        if not isinstance(have, (set, frozenset)):
            have = frozenset(have)
        if self.mode is TagMode.ALL:
            return self.tags <= have
        return not self.tags.isdisjoint(have)


@dataclass(frozen=True, slots=True)
class And(Criteria):
    left: Criteria
    right: Criteria

    def __post_init__(self) -> None:
        ensure_criteria(self.left)
        ensure_criteria(self.right)

    def apply(self, record: Record) -> bool:
        return self.left.apply(record) and self.right.apply(record)


@dataclass(frozen=True, slots=True)
class Or(Criteria):
    left: Criteria
    right: Criteria

    def __post_init__(self) -> None:
        ensure_criteria(self.left)
        ensure_criteria(self.right)

    def apply(self, record: Record) -> bool:
        return self.left.apply(record) or self.right.apply(record)


# --- Constructors ---

def everything() -> Criteria:
    return Everything()


def start_at(time: datetime, inclusive: bool = True) -> Criteria:
    return Start(time, inclusive)


def end_at(time: datetime, inclusive: bool = True) -> Criteria:
    return End(time, inclusive)


def has_tags(tags: Iterable[Tag] | Tag, mode: TagMode | str = TagMode.ALL) -> Criteria:
    return Tags(tags, mode)  # type: ignore[arg-type]


def both(left: Criteria, right: Criteria) -> Criteria:
    return And(left, right)


def either(left: Criteria, right: Criteria) -> Criteria:
    return Or(left, right)


def all_of(*criteria: Criteria) -> Criteria:
    """Left-nested And over one or more criteria."""
    if not criteria:
        raise InvalidCriteria("all_of() needs at least one criteria")
    return reduce(And, criteria) if len(criteria) > 1 else ensure_criteria(criteria[0])


def any_of(*criteria: Criteria) -> Criteria:
    """Left-nested Or over one or more criteria."""
    if not criteria:
        raise InvalidCriteria("any_of() needs at least one criteria")
    return reduce(Or, criteria) if len(criteria) > 1 else ensure_criteria(criteria[0])


def exact_time(time: datetime) -> Criteria:
    """Records stamped exactly at `time` (both bounds inclusive)."""
    return And(Start(time, True), End(time, True))


def time_range(
    start: datetime,
    start_inclusive: bool,
    end: datetime,
    end_inclusive: bool,
) -> Criteria:
    return And(Start(start, start_inclusive), End(end, end_inclusive))
