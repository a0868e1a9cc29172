"""The record contract and the engine's immutable snapshot of a record.

Application types never get stored as themselves. At put() time the
engine reads timestamp, tags and values exactly once and keeps a
StoredRecord; everything after that (search, remove, the log on disk)
works on the snapshot. A caller mutating its own object afterwards has
no effect on what was stored.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from emseries.domain.errors import InvalidRecord
from emseries.domain.timestamps import ensure_aware
from emseries.domain.types import SequenceId, Tag


@runtime_checkable
class Record(Protocol):
    """Anything with a timestamp, a tag set and an ordered list of values.

    Values are opaque strings: the engine stores and returns them but
    never looks inside.
    """

    @property
    def timestamp(self) -> datetime: ...

    @property
    def tags(self) -> Iterable[Tag]: ...

    @property
    def values(self) -> Sequence[str]: ...


@dataclass(frozen=True, slots=True)
class StoredRecord:
    """Snapshot of a record as the engine persisted it.

    Satisfies the Record protocol, so it can be fed straight back into
    put() or update().
    """
    sequence_id: SequenceId
    timestamp: datetime
    tags: frozenset[Tag]
    values: tuple[str, ...]

    def has_tag(self, tag: Tag) -> bool:
        return tag in self.tags


def _text(value: object) -> str:
    text = str(value)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidRecord(f"{text!r} cannot be stored as UTF-8") from exc
    return text


def snapshot(record: Record, sequence_id: SequenceId) -> StoredRecord:
    """Read the three accessors once and freeze the result.

    Naive timestamps are taken to be UTC.
    """
    ts = record.timestamp
    if ts is None:
        raise InvalidRecord(f"{type(record).__name__} has no timestamp")
    if not isinstance(ts, datetime):
        raise InvalidRecord(
            f"timestamp must be a datetime, got {type(ts).__name__}"
        )
    tags = record.tags
    values = record.values
    if isinstance(tags, str) or isinstance(values, str):
        raise InvalidRecord("tags and values must be collections of strings, not a str")
    frozen_tags = frozenset(_text(t) for t in (tags or ()))
    frozen_values = tuple(_text(v) for v in (values or ()))
    return StoredRecord(
        sequence_id=sequence_id,
        timestamp=ensure_aware(ts),
        tags=frozen_tags,
        values=frozen_values,
    )
