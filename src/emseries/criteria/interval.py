"""Interval: a named start/end pair with per-end inclusivity.

Gives callers a value type instead of four loose arguments, plus a
contains() check usable outside of a series. as_criteria() turns a time
interval into the equivalent Start/End tree.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from emseries.criteria.tree import Criteria, time_range
from emseries.domain.timestamps import to_utc


def _comparable(value: Any) -> Any:
    return to_utc(value) if isinstance(value, datetime) else value


@dataclass(frozen=True, slots=True)
class Interval:
    """Interval over any ordered type. Both ends inclusive by default."""
    start: Any
    end: Any
    start_inclusive: bool = True
    end_inclusive: bool = True

    def __post_init__(self) -> None:
        if _comparable(self.start) > _comparable(self.end):
            raise ValueError(
                f"start ({self.start}) must be <= end ({self.end})"
            )

    @classmethod
    def exact(cls, value: Any) -> Interval:
        """An interval containing only `value`."""
        return cls(value, value, True, True)

    def contains(self, value: Any) -> bool:
        start, end, value = _comparable(self.start), _comparable(self.end), _comparable(value)
        after_start = start <= value if self.start_inclusive else start < value
        if not after_start:
            return False
        return value <= end if self.end_inclusive else value < end

    def __contains__(self, value: Any) -> bool:
        return self.contains(value)

    @property
    def span(self) -> Any:
        return _comparable(self.end) - _comparable(self.start)

    def as_criteria(self) -> Criteria:
        """Start/End criteria for a datetime interval."""
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise TypeError("only datetime intervals convert to criteria")
        return time_range(self.start, self.start_inclusive, self.end, self.end_inclusive)

