"""emseries: an embeddable, file-backed time-series record store.

    import emseries
    from emseries.criteria import start_at, end_at, has_tags

    with emseries.open("var/rides.jsonl") as series:
        series.put(ride)
        series.search(start_at(t0) & has_tags({"commute"}))
"""
from emseries.config import SeriesConfig
from emseries.criteria import (
    Criteria,
    Interval,
    TagMode,
    all_of,
    any_of,
    both,
    either,
    end_at,
    everything,
    exact_time,
    has_tags,
    start_at,
    time_range,
)
from emseries.domain import (
    CorruptionError,
    InvalidCriteria,
    InvalidRecord,
    Record,
    SeriesClosedError,
    SeriesError,
    SeriesIOError,
    StoredRecord,
    TruncatedTailWarning,
)
from emseries.store import Series, open_series

open = open_series

__all__ = [
    "SeriesConfig",
    "Criteria",
    "Interval",
    "TagMode",
    "all_of",
    "any_of",
    "both",
    "either",
    "end_at",
    "everything",
    "exact_time",
    "has_tags",
    "start_at",
    "time_range",
    "CorruptionError",
    "InvalidCriteria",
    "InvalidRecord",
    "Record",
    "SeriesClosedError",
    "SeriesError",
    "SeriesIOError",
    "StoredRecord",
    "TruncatedTailWarning",
    "Series",
    "open",
    "open_series",
]
