"""Line codec for log units.

One unit per line, encoded as a compact JSON object. Most units are
envelopes:

    {"sequence_id":3,"timestamp":"2018-02-01T12:00:00-05:00",
     "tags":["ride"],"values":["5.5","1200s"],"deleted":false}

An update adds "supersedes": <old id>. Removing several records without
compaction writes a single deletion batch instead:

    {"deleted_ids":[3,7,9]}

The trailing newline is the unit delimiter, so a line without one was
never finished.
"""
from __future__ import annotations

import json
from typing import Any

from emseries.domain.envelope import DeletionBatch, Envelope
from emseries.domain.record import StoredRecord
from emseries.domain.timestamps import format_timestamp, parse_timestamp

Unit = Envelope | DeletionBatch


class DecodeError(ValueError):
    """A line is not a well-formed unit."""


def _dump(obj: dict[str, Any]) -> bytes:
    return (json.dumps(obj, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


def encode_envelope(envelope: Envelope) -> bytes:
    """Serialize to one newline-terminated UTF-8 line."""
    rec = envelope.record
    obj: dict[str, Any] = {
        "sequence_id": rec.sequence_id,
        "timestamp": format_timestamp(rec.timestamp),
        "tags": sorted(rec.tags),
        "values": list(rec.values),
        "deleted": envelope.deleted,
    }
    if envelope.supersedes is not None:
        obj["supersedes"] = envelope.supersedes
    return _dump(obj)


def encode_deletions(batch: DeletionBatch) -> bytes:
    return _dump({"deleted_ids": list(batch.sequence_ids)})


def _string_list(obj: dict[str, Any], key: str) -> list[str]:
    value = obj.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise DecodeError(f"{key!r} must be a list of strings")
    return value


def _sequence_id(value: Any, key: str) -> int:
    # bool is an int subclass; reject it explicitly
    if type(value) is not int or value < 0:
        raise DecodeError(f"{key!r} must be a non-negative integer")
    return value


def _load(line: bytes) -> dict[str, Any]:
    try:
        obj = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"not valid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise DecodeError("unit is not a JSON object")
    return obj


def _envelope(obj: dict[str, Any]) -> Envelope:
    seq = _sequence_id(obj.get("sequence_id"), "sequence_id")
    raw_ts = obj.get("timestamp")
    if not isinstance(raw_ts, str):
        raise DecodeError("'timestamp' must be a string")
    try:
        ts = parse_timestamp(raw_ts)
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc

    deleted = obj.get("deleted", False)
    if not isinstance(deleted, bool):
        raise DecodeError("'deleted' must be a boolean")
    supersedes = obj.get("supersedes")
    if supersedes is not None:
        supersedes = _sequence_id(supersedes, "supersedes")

    record = StoredRecord(
        sequence_id=seq,
        timestamp=ts,
        tags=frozenset(_string_list(obj, "tags")),
        values=tuple(_string_list(obj, "values")),
    )
    return Envelope(record=record, deleted=deleted, supersedes=supersedes)


def _deletions(obj: dict[str, Any]) -> DeletionBatch:
    ids = obj["deleted_ids"]
    if not isinstance(ids, list) or not ids:
        raise DecodeError("'deleted_ids' must be a non-empty list")
    return DeletionBatch(tuple(_sequence_id(i, "deleted_ids") for i in ids))


def decode_envelope(line: bytes) -> Envelope:
    """Parse one envelope line (with or without its newline)."""
    return _envelope(_load(line))


def decode_unit(line: bytes) -> Unit:
    """Parse any log line: an envelope or a deletion batch."""
    obj = _load(line)
    if "deleted_ids" in obj:
        return _deletions(obj)
    return _envelope(obj)
