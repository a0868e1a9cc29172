"""Series: one open time-series store (log file + in-memory index).

The index holds every live envelope sorted by (UTC instant, sequence_id),
so records sharing a timestamp come back in insertion order.

Thread safety strategy: copy-on-write. All mutations (put, update,
delete, remove, compact) run under one lock that guards both the log
file and the index. A mutation builds a NEW snapshot and swaps the
reference only after the log write succeeded, so:

  - a failed write leaves the visible state exactly as it was
  - search() reads the reference once and scans it without locking,
    never seeing a half-applied mutation and never waiting for a slow
    compaction to finish
"""
from __future__ import annotations

import bisect
import logging
import os
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from emseries.config import SeriesConfig
from emseries.criteria.tree import Criteria, ensure_criteria
from emseries.domain.envelope import Envelope
from emseries.domain.errors import SeriesClosedError
from emseries.domain.record import Record, StoredRecord, snapshot
from emseries.domain.types import SequenceId
from emseries.store.log_file import LogFile

log = logging.getLogger(__name__)

Decoder = Callable[[StoredRecord], Any]


def _sort_key(envelope: Envelope) -> tuple:
    return envelope.sort_key


@dataclass(frozen=True, slots=True)
class _Snapshot:
    """Immutable view of the live records. Replaced, never edited."""
    index: tuple[Envelope, ...] = ()
    by_id: dict[SequenceId, Envelope] = field(default_factory=dict)

    @classmethod
    def build(cls, envelopes: list[Envelope]) -> _Snapshot:
        envelopes.sort(key=_sort_key)
        return cls(tuple(envelopes), {e.sequence_id: e for e in envelopes})

    def with_envelope(self, envelope: Envelope, replacing: SequenceId | None = None) -> _Snapshot:
        index = self.index
        by_id = dict(self.by_id)
        if replacing is not None:
            index = tuple(e for e in index if e.sequence_id != replacing)
            del by_id[replacing]
        pos = bisect.bisect_right(index, envelope.sort_key, key=_sort_key)
        by_id[envelope.sequence_id] = envelope
        return _Snapshot(index[:pos] + (envelope,) + index[pos:], by_id)

    def without(self, sequence_ids: set[SequenceId]) -> _Snapshot:
        kept = [e for e in self.index if e.sequence_id not in sequence_ids]
        return _Snapshot(tuple(kept), {e.sequence_id: e for e in kept})


class Series:
    """An open series.

    Usage:
        with Series.open("var/rides.jsonl") as series:
            series.put(ride)
            rides = series.search(start_at(t0) & end_at(t1))

    Args:
        log_file: The open log backing this series.
        live: Live envelopes recovered from the log, any order.
        next_sequence_id: First id to hand out.
        high_water: Envelope with the largest id ever issued (or None).
        decoder: Optional callable turning StoredRecord into an
            application object. Applied to everything returned.
        config: Settings the series was opened with.
    """

    def __init__(
        self,
        log_file: LogFile,
        live: list[Envelope],
        next_sequence_id: SequenceId,
        high_water: Envelope | None = None,
        decoder: Decoder | None = None,
        config: SeriesConfig | None = None,
    ) -> None:
        self._log = log_file
        self._state = _Snapshot.build(list(live))
        self._next_id = next_sequence_id
        self._high_water = high_water
        self._decoder = decoder
        self._config = config or SeriesConfig()
        self._lock = threading.Lock()  # serializes mutations; readers never take it

    @classmethod
    def open(
        cls,
        path: str | os.PathLike[str],
        *,
        decoder: Decoder | None = None,
        config: SeriesConfig | None = None,
    ) -> Series:
        """Open the series at `path`, creating an empty one if missing.

        Raises CorruptionError if a record other than the last one is
        unreadable, SeriesIOError if the file cannot be opened or read.
        """
        config = config or SeriesConfig()
        log_file, recovery = LogFile.open(path, config)
        return cls(
            log_file,
            list(recovery.live.values()),
            recovery.next_sequence_id,
            high_water=recovery.high_water,
            decoder=decoder,
            config=config,
        )

    # --- properties ---

    @property
    def path(self) -> str:
        return self._log.path

    @property
    def closed(self) -> bool:
        return self._log.closed

    @property
    def next_sequence_id(self) -> SequenceId:
        return self._next_id

    @property
    def config(self) -> SeriesConfig:
        return self._config

    def __len__(self) -> int:
        return len(self._state.index)

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"{len(self)} records"
        return f"Series({self.path!r}, {state})"

    # --- writes ---

    def put(self, record: Record) -> SequenceId:
        """Store a snapshot of `record` and return its sequence id.

        If the append fails the id is not consumed and nothing changes.
        """
        with self._lock:
            self._check_open()
            seq = self._next_id
            envelope = Envelope(snapshot(record, seq))
            self._log.append(envelope)
            self._state = self._state.with_envelope(envelope)
            self._next_id = seq + 1
            self._high_water = envelope
        return seq

    def update(self, sequence_id: SequenceId, record: Record) -> SequenceId:
        """Replace a stored record with a new snapshot.

        Written as a single unit that supersedes the old one, so a crash
        leaves either the old or the new version, never both or neither.

        The replacement gets a fresh sequence id, which is returned. The
        old id stops resolving: get(sequence_id) returns None afterwards,
        so callers holding ids must switch to the returned one.

        Raises KeyError if `sequence_id` is not a live record.
        """
        with self._lock:
            self._check_open()
            if sequence_id not in self._state.by_id:
                raise KeyError(sequence_id)
            seq = self._next_id
            envelope = Envelope(snapshot(record, seq), supersedes=sequence_id)
            self._log.append(envelope)
            self._state = self._state.with_envelope(envelope, replacing=sequence_id)
            self._next_id = seq + 1
            self._high_water = envelope
        log.debug("record %d superseded by %d in %s", sequence_id, seq, self.path)
        return seq

    def delete(self, sequence_id: SequenceId) -> bool:
        """Tombstone one record by id without compacting.

        Returns False if there was no such live record.
        """
        with self._lock:
            self._check_open()
            envelope = self._state.by_id.get(sequence_id)
            if envelope is None:
                return False
            self._log.append(envelope.tombstone())
            self._state = self._state.without({sequence_id})
        return True

    def remove(self, criteria: Criteria) -> list[Any]:
        """Delete every record matching `criteria` and return them.

        With compact_on_remove (the default) the log is rewritten without
        the removed records; otherwise one tombstone per record is
        appended as one deletion unit. Either way the index is swapped only
        after the disk side succeeded, so a failure changes nothing.
        """
        criteria = ensure_criteria(criteria)
        with self._lock:
            self._check_open()
            state = self._state
            kept: list[Envelope] = []
            removed: list[Envelope] = []
            for envelope in state.index:
                if criteria.apply(envelope.record):
                    removed.append(envelope)
                else:
                    kept.append(envelope)
            if not removed:
                return []

            if self._config.compact_on_remove:
                self._log.compact(kept, self._high_water)
            else:
                self._log.append_deletions(e.sequence_id for e in removed)
            self._state = state.without({e.sequence_id for e in removed})

        log.debug("removed %d records from %s", len(removed), self.path)
        return [self._unwrap(e) for e in removed]

    def compact(self) -> int:
        """Rewrite the log with only the live records. Returns units written."""
        with self._lock:
            self._check_open()
            return self._log.compact(self._state.index, self._high_water)

    # --- reads ---

    def search(self, criteria: Criteria) -> list[Any]:
        """Matching records in chronological order. No I/O."""
        criteria = ensure_criteria(criteria)
        self._check_open()
        index = self._state.index
        return [self._unwrap(e) for e in index if criteria.apply(e.record)]

    def search_sorted(
        self,
        criteria: Criteria,
        key: Callable[[Any], Any],
        reverse: bool = False,
    ) -> list[Any]:
        """search() re-sorted by `key`, which receives returned objects."""
        return sorted(self.search(criteria), key=key, reverse=reverse)

    def get(self, sequence_id: SequenceId) -> Any | None:
        self._check_open()
        envelope = self._state.by_id.get(sequence_id)
        return None if envelope is None else self._unwrap(envelope)

    def records(self) -> Iterator[Any]:
        """Iterate every live record, oldest first.

        Iterates the snapshot current at the time of the call; later
        mutations do not affect a running iteration.
        """
        self._check_open()
        index = self._state.index
        return (self._unwrap(e) for e in index)

    def all_records(self) -> list[Any]:
        return list(self.records())

    # --- lifecycle ---

    def close(self) -> None:
        """Release the file handle. Idempotent."""
        with self._lock:
            self._log.close()

    def __enter__(self) -> Series:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- internals ---

    def _check_open(self) -> None:
        if self._log.closed:
            raise SeriesClosedError(f"series {self.path} is closed")

    def _unwrap(self, envelope: Envelope) -> Any:
        if self._decoder is None:
            return envelope.record
        return self._decoder(envelope.record)


def open_series(
    path: str | os.PathLike[str],
    *,
    decoder: Decoder | None = None,
    config: SeriesConfig | None = None,
) -> Series:
    """Module-level shorthand for Series.open()."""
    return Series.open(path, decoder=decoder, config=config)
