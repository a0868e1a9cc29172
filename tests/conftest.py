"""Shared fixtures: a sample application record type and series paths."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from emseries.config import SeriesConfig
from emseries.domain.record import StoredRecord
from emseries.store.series import Series

# 2018-02-01T12:00:00-05:00
EST = timezone(timedelta(hours=-5))
RIDE_TIME = datetime(2018, 2, 1, 12, 0, 0, tzinfo=EST)
BASE = datetime(2011, 10, 29, tzinfo=timezone.utc)


@dataclass
class BikeRide:
    """An application type that knows nothing about emseries internals."""
    date: datetime
    distance_km: float
    duration_s: int
    notes: str = ""
    labels: set[str] = field(default_factory=set)

    @property
    def timestamp(self) -> datetime:
        return self.date

    @property
    def tags(self) -> set[str]:
        return self.labels

    @property
    def values(self) -> list[str]:
        return [repr(self.distance_km), str(self.duration_s), self.notes]

    @classmethod
    def from_record(cls, record: StoredRecord) -> BikeRide:
        distance, duration, notes = record.values
        return cls(
            date=record.timestamp,
            distance_km=float(distance),
            duration_s=int(duration),
            notes=notes,
            labels=set(record.tags),
        )


def make_ride(
    date: datetime = RIDE_TIME,
    distance_km: float = 5.5,
    duration_s: int = 1200,
    notes: str = "",
    labels: set[str] | None = None,
) -> BikeRide:
    return BikeRide(date, distance_km, duration_s, notes, set(labels or ()))


def day(n: int, hour: int = 0) -> datetime:
    """BASE shifted by n days (and `hour` hours)."""
    return BASE + timedelta(days=n, hours=hour)


@pytest.fixture
def ride_factory():
    return make_ride


@pytest.fixture
def decode_ride():
    return BikeRide.from_record


@pytest.fixture
def at_day():
    return day


@pytest.fixture
def ride_time() -> datetime:
    return RIDE_TIME


@pytest.fixture
def series_path(tmp_path):
    # nested on purpose: open() must create missing parent directories
    return tmp_path / "var" / "rides.jsonl"


@pytest.fixture
def fast_config() -> SeriesConfig:
    return SeriesConfig(fsync=False)


@pytest.fixture
def open_rides(series_path, decode_ride):
    """Factory opening the rides series; everything opened is closed at teardown."""
    opened: list[Series] = []

    def _open(**kwargs) -> Series:
        kwargs.setdefault("decoder", decode_ride)
        series = Series.open(series_path, **kwargs)
        opened.append(series)
        return series

    yield _open
    for series in opened:
        series.close()


@pytest.fixture
def rides(open_rides) -> Series:
    return open_rides()
