"""Timestamp encoding for the on-disk log.

Three textual forms are written and read back:

    2019-05-15T12:00:00Z                    UTC
    2018-02-01T12:00:00-05:00               fixed offset
    2019-06-15T19:00:00Z America/Phoenix    named IANA zone

The named-zone form keeps the UTC instant and the zone name side by side,
so a reader years later knows both the exact moment and the local frame it
was recorded in.
"""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_UTC_KEYS = frozenset({"UTC", "Etc/UTC", "Etc/Zulu", "Zulu"})


def ensure_aware(dt: datetime) -> datetime:
    """Return dt unchanged if it carries a zone, else pin it to UTC."""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    """The instant dt names, as a UTC datetime. Naive means UTC.

    Aware datetimes sharing one tzinfo compare by wall clock, which is
    ambiguous around a DST fall-back. Order and compare on this instead.
    """
    return ensure_aware(dt).astimezone(timezone.utc)


def _utc_string(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def format_timestamp(dt: datetime) -> str:
    dt = ensure_aware(dt)
    tz = dt.tzinfo
    if isinstance(tz, ZoneInfo) and tz.key not in _UTC_KEYS:
        return f"{_utc_string(dt)} {tz.key}"
    if dt.utcoffset() == timezone.utc.utcoffset(None):
        return _utc_string(dt)
    return dt.isoformat()


def parse_timestamp(text: str) -> datetime:
    """Inverse of format_timestamp.

    Raises ValueError for anything that is not one of the three forms,
    including naive timestamps and unknown zone names.
    """
    parts = text.split(" ")
    if len(parts) > 2 or not parts[0]:
        raise ValueError(f"unparseable timestamp {text!r}")
    dt = datetime.fromisoformat(parts[0])
    if dt.tzinfo is None:
        raise ValueError(f"timestamp {text!r} has no UTC offset")
    if len(parts) == 2:
        try:
            zone = ZoneInfo(parts[1])
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {parts[1]!r}") from exc
        dt = dt.astimezone(zone)
    elif dt.utcoffset() == timezone.utc.utcoffset(None):
        dt = dt.astimezone(timezone.utc)
    return dt
