"""Domain model for emseries.

Re-exports the public types for convenient access:
    from emseries.domain import Record, StoredRecord, SeriesError
"""
from emseries.domain.envelope import DeletionBatch, Envelope
from emseries.domain.errors import (
    CorruptionError,
    InvalidCriteria,
    InvalidRecord,
    SeriesClosedError,
    SeriesError,
    SeriesIOError,
    TruncatedTailWarning,
)
from emseries.domain.record import Record, StoredRecord, snapshot
from emseries.domain.timestamps import (
    ensure_aware,
    format_timestamp,
    parse_timestamp,
    to_utc,
)
from emseries.domain.types import SequenceId, Tag, Timestamp

__all__ = [
    "DeletionBatch",
    "Envelope",
    "CorruptionError",
    "InvalidCriteria",
    "InvalidRecord",
    "SeriesClosedError",
    "SeriesError",
    "SeriesIOError",
    "TruncatedTailWarning",
    "Record",
    "StoredRecord",
    "snapshot",
    "ensure_aware",
    "format_timestamp",
    "parse_timestamp",
    "to_utc",
    "SequenceId",
    "Tag",
    "Timestamp",
]
