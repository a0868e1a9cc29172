"""Append-only log file: durable storage for envelopes.

File format: one JSON envelope per line (see codec.py). The file only
ever grows by appending, except during compaction, which writes a fresh
file next to the log and renames it over the old one.

Recovery on open replays every line in order:
    live unit        -> insert
    deleted unit     -> drop the envelope with that sequence id
    supersedes unit  -> drop the superseded envelope, insert this one
    deletion batch   -> drop every listed envelope

A broken last line means the process died mid-append. That record was
never acknowledged, so it is dropped, the file is cut back to the last
complete line, and a TruncatedTailWarning is emitted. A broken line
anywhere else cannot be explained by a crash and raises CorruptionError.

Durability: append() returns only after write + fsync. Writes go through
an unbuffered handle so a failed append never leaves bytes sitting in a
userspace buffer to be flushed later. If the rollback after a failed
append fails too, the LogFile refuses further writes until reopened.
"""
from __future__ import annotations

import logging
import os
import warnings
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import BinaryIO

from emseries.config import SeriesConfig
from emseries.domain.envelope import DeletionBatch, Envelope
from emseries.domain.errors import (
    CorruptionError,
    SeriesClosedError,
    SeriesIOError,
    TruncatedTailWarning,
)
from emseries.domain.types import SequenceId
from emseries.store.codec import (
    DecodeError,
    Unit,
    decode_unit,
    encode_deletions,
    encode_envelope,
)

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Recovery:
    """What replaying the log produced."""
    live: dict[SequenceId, Envelope] = field(default_factory=dict)
    high_water: Envelope | None = None      # envelope with the largest id seen
    units_read: int = 0
    truncated_bytes: int = 0

    @property
    def next_sequence_id(self) -> SequenceId:
        if self.high_water is None:
            return 0
        return self.high_water.sequence_id + 1

    def apply(self, unit: Unit) -> None:
        self.units_read += 1
        if isinstance(unit, DeletionBatch):
            for sequence_id in unit.sequence_ids:
                self.live.pop(sequence_id, None)
            return
        envelope = unit
        if self.high_water is None or envelope.sequence_id > self.high_water.sequence_id:
            self.high_water = envelope
        if envelope.deleted:
            self.live.pop(envelope.sequence_id, None)
            return
        if envelope.supersedes is not None:
            self.live.pop(envelope.supersedes, None)
        self.live[envelope.sequence_id] = envelope


def _units(reader: BinaryIO) -> Iterator[tuple[int, int, bytes]]:
    """Yield (line_number, byte_offset, raw_line) for every line."""
    offset = 0
    for line_number, raw in enumerate(reader, start=1):
        yield line_number, offset, raw
        offset += len(raw)


def _replay(reader: BinaryIO, path: str) -> tuple[Recovery, int]:
    """Rebuild the live set. Returns (recovery, length of the good prefix)."""
    recovery = Recovery()
    good_length = 0
    units = _units(reader)
    current = next(units, None)
    while current is not None:
        following = next(units, None)
        line_number, offset, raw = current
        try:
            if not raw.endswith(b"\n"):
                raise DecodeError("unterminated unit")
            if raw.strip():
                recovery.apply(decode_unit(raw))
        except DecodeError as exc:
            if following is not None:
                raise CorruptionError(path, line_number, str(exc)) from exc
            recovery.truncated_bytes = len(raw)
            warnings.warn(
                f"{path}:{line_number}: discarding incomplete final record ({exc})",
                TruncatedTailWarning,
                stacklevel=4,
            )
            log.warning(
                "discarded truncated tail of %s at line %d (%d bytes): %s",
                path, line_number, len(raw), exc,
            )
            break
        good_length = offset + len(raw)
        current = following
    return recovery, good_length


def _write_all(fh: BinaryIO, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = fh.write(view)
        if not written:
            raise OSError(f"short write to {fh.name!r}")
        view = view[written:]


class LogFile:
    """Owns the file handle of one series log.

    Not thread-safe on its own; Series serializes every call behind its
    mutation lock.
    """

    def __init__(self, path: str, fh: BinaryIO, config: SeriesConfig) -> None:
        self._path = path
        self._fh: BinaryIO | None = fh
        self._config = config
        self._unusable: str | None = None  # set when a failed append could not be undone

    @classmethod
    def open(
        cls, path: str | os.PathLike[str], config: SeriesConfig | None = None,
    ) -> tuple[LogFile, Recovery]:
        """Open (creating if needed) and replay the log at `path`."""
        path = os.fspath(path)
        config = config or SeriesConfig()
        try:
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            fh = open(path, "ab", buffering=0)
        except OSError as exc:
            raise SeriesIOError(f"cannot open {path}: {exc}") from exc

        log_file = cls(path, fh, config)
        try:
            log_file._remove_stale_compaction()
            with open(path, "rb") as reader:
                recovery, good_length = _replay(reader, path)
            if recovery.truncated_bytes:
                fh.truncate(good_length)
                log_file._sync(fh)
        except OSError as exc:
            fh.close()
            raise SeriesIOError(f"cannot read {path}: {exc}") from exc
        except BaseException:
            fh.close()
            raise

        log.debug(
            "opened %s: %d units replayed, %d live, next id %d",
            path, recovery.units_read, len(recovery.live), recovery.next_sequence_id,
        )
        return log_file, recovery

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._fh is None

    @property
    def size_bytes(self) -> int:
        fh = self._handle()
        try:
            return os.fstat(fh.fileno()).st_size
        except OSError as exc:
            raise SeriesIOError(f"cannot stat {self._path}: {exc}") from exc

    def append(self, envelope: Envelope) -> None:
        """Write one envelope and make it durable.

        On failure the file is cut back to its previous length and
        SeriesIOError is raised, so the envelope never shows up on the
        next open either.
        """
        self._append_unit(encode_envelope(envelope), f"unit {envelope.sequence_id}")

    def append_deletions(self, sequence_ids: Iterable[SequenceId]) -> None:
        """Tombstone several records with one unit.

        A crash mid-write leaves an incomplete last line, which recovery
        discards, so either every listed record is deleted or none is.
        """
        ids = tuple(sequence_ids)
        if not ids:
            self._handle()
            return
        self._append_unit(
            encode_deletions(DeletionBatch(ids)), f"deletion of {len(ids)} unit(s)",
        )

    def _append_unit(self, data: bytes, what: str) -> None:
        fh = self._handle()
        try:
            start = os.fstat(fh.fileno()).st_size
        except OSError as exc:
            raise SeriesIOError(f"cannot stat {self._path}: {exc}") from exc
        try:
            _write_all(fh, data)
            self._sync(fh)
        except OSError as exc:
            self._rollback(fh, start)
            raise SeriesIOError(f"{what} to {self._path} failed: {exc}") from exc
        log.debug("appended %s to %s", what, self._path)

    def compact(
        self,
        survivors: Iterable[Envelope],
        high_water: Envelope | None = None,
    ) -> int:
        """Replace the log with exactly `survivors`, in the order given.

        `high_water` is the envelope carrying the largest sequence id ever
        issued. If it is not among the survivors its tombstone is written
        as well, so reopening never hands that id out again.

        The old file stays in place until the new one is fully synced;
        os.replace then swaps them atomically. Returns the number of
        units written.
        """
        fh = self._handle()
        tmp_path = self._path + self._config.compact_suffix
        new_fh: BinaryIO | None = None
        written = 0
        try:
            with open(tmp_path, "wb") as out:
                seen: set[SequenceId] = set()
                for envelope in survivors:
                    out.write(encode_envelope(envelope))
                    seen.add(envelope.sequence_id)
                    written += 1
                if high_water is not None and high_water.sequence_id not in seen:
                    out.write(encode_envelope(high_water.tombstone()))
                    written += 1
                out.flush()
                self._sync(out)
            new_fh = open(tmp_path, "ab", buffering=0)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            if new_fh is not None:
                new_fh.close()
            self._discard(tmp_path)
            raise SeriesIOError(f"compaction of {self._path} failed: {exc}") from exc

        self._sync_directory()
        self._fh = new_fh
        try:
            fh.close()
        except OSError:
            log.warning("error closing replaced handle for %s", self._path, exc_info=True)
        log.debug("compacted %s to %d units", self._path, written)
        return written

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as exc:
            raise SeriesIOError(f"cannot close {self._path}: {exc}") from exc

    # --- internals ---

    def _handle(self) -> BinaryIO:
        if self._fh is None:
            raise SeriesClosedError(f"{self._path} is closed")
        if self._unusable is not None:
            raise SeriesIOError(f"{self._path} must be reopened: {self._unusable}")
        return self._fh

    def _sync(self, fh: BinaryIO) -> None:
        if self._config.fsync:
            os.fsync(fh.fileno())

    def _sync_directory(self) -> None:
        """Persist the rename itself. POSIX only."""
        if not self._config.fsync or os.name == "nt":
            return
        directory = os.path.dirname(os.path.abspath(self._path))
        try:
            fd = os.open(directory, os.O_RDONLY)
            try:
                os.fsync(fd)
            finally:
                os.close(fd)
        except OSError:
            # The rename already happened; the new file is the log now.
            log.warning("could not fsync directory %s", directory, exc_info=True)

    def _rollback(self, fh: BinaryIO, length: int) -> None:
        try:
            os.ftruncate(fh.fileno(), length)
        except OSError as exc:
            # The failed unit may still be on disk. Writing after it would
            # reuse its sequence id.
            self._unusable = f"a failed append could not be rolled back ({exc})"
            log.error(
                "could not roll %s back to %d bytes after a failed append",
                self._path, length, exc_info=True,
            )

    def _discard(self, tmp_path: str) -> None:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        except OSError:
            log.warning("could not remove %s", tmp_path, exc_info=True)

    def _remove_stale_compaction(self) -> None:
        tmp_path = self._path + self._config.compact_suffix
        if os.path.exists(tmp_path):
            log.warning("removing leftover compaction file %s", tmp_path)
            os.unlink(tmp_path)
