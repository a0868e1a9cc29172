"""Criteria: composable predicates for search() and remove()."""
from emseries.criteria.interval import Interval
from emseries.criteria.tree import (
    And,
    Criteria,
    End,
    Everything,
    Or,
    Start,
    TagMode,
    Tags,
    all_of,
    any_of,
    both,
    either,
    end_at,
    ensure_criteria,
    everything,
    exact_time,
    has_tags,
    start_at,
    time_range,
)

__all__ = [
    "Interval",
    "And",
    "Criteria",
    "End",
    "Everything",
    "Or",
    "Start",
    "TagMode",
    "Tags",
    "all_of",
    "any_of",
    "both",
    "either",
    "end_at",
    "ensure_criteria",
    "everything",
    "exact_time",
    "has_tags",
    "start_at",
    "time_range",
]
