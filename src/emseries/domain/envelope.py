"""Envelope: a StoredRecord plus the bookkeeping the log needs.

Mirrors the hash-chain idea of wrapping an entry with sequence metadata,
minus the hashes. An envelope is never edited; deleting a record means
writing a new envelope with deleted=True (a tombstone) or leaving it out
of a compacted file.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from emseries.domain.record import StoredRecord
from emseries.domain.timestamps import to_utc
from emseries.domain.types import SequenceId, Tag


@dataclass(frozen=True, slots=True)
class Envelope:
    record: StoredRecord
    deleted: bool = False
    supersedes: SequenceId | None = None  # id this envelope replaces (update)

    @property
    def sequence_id(self) -> SequenceId:
        return self.record.sequence_id

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp

    @property
    def tags(self) -> frozenset[Tag]:
        return self.record.tags

    @property
    def sort_key(self) -> tuple[datetime, SequenceId]:
        """Index order: UTC instant first, sequence id breaks ties."""
        return (to_utc(self.record.timestamp), self.record.sequence_id)

    def tombstone(self) -> Envelope:
        """A deleted copy of this envelope, ready to append to the log."""
        return replace(self, deleted=True, supersedes=None)


@dataclass(frozen=True, slots=True)
class DeletionBatch:
    """Tombstones for several records, written to the log as one unit.

    The unit is one line, so replay applies all of the deletions or, if
    the line never reached the disk intact, none of them.
    """
    sequence_ids: tuple[SequenceId, ...]
