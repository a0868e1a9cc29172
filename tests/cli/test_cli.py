"""Tests for the emseries command line."""
from __future__ import annotations

import json

import pytest

from emseries.cli import main
from emseries.store.series import Series


@pytest.fixture
def populated(series_path, fast_config, ride_factory, at_day):
    with Series.open(series_path, config=fast_config) as series:
        series.put(ride_factory(at_day(0), labels={"commute"}))
        series.put(ride_factory(at_day(1), labels={"commute", "rain"}))
        series.put(ride_factory(at_day(2), labels={"race"}))
        series.delete(0)
    return str(series_path)


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage: emseries" in capsys.readouterr().out


def test_stats(populated, capsys):
    assert main(["stats", populated]) == 0
    out = capsys.readouterr().out
    assert "records:          2" in out
    assert "next sequence id: 3" in out
    assert "first:            2011-10-30T00:00:00Z" in out
    assert "last:             2011-10-31T00:00:00Z" in out


def test_dump_everything(populated, capsys):
    assert main(["dump", populated]) == 0
    lines = capsys.readouterr().out.splitlines()
    rows = [json.loads(line) for line in lines]
    assert [r["sequence_id"] for r in rows] == [1, 2]
    assert rows[0]["tags"] == ["commute", "rain"]
    assert rows[0]["values"] == ["5.5", "1200", ""]


def test_dump_filters_by_tag(populated, capsys):
    assert main(["dump", populated, "--tag", "rain"]) == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["sequence_id"] for r in rows] == [1]


def test_dump_any_tag(populated, capsys):
    assert main(["dump", populated, "--tag", "rain", "--tag", "race", "--any"]) == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["sequence_id"] for r in rows] == [1, 2]


def test_dump_since_is_inclusive(populated, capsys):
    assert main(["dump", populated, "--since", "2011-10-31T00:00:00"]) == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["sequence_id"] for r in rows] == [2]


def test_dump_until(populated, capsys):
    assert main(["dump", populated, "--until", "2011-10-30T00:00:00+00:00"]) == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["sequence_id"] for r in rows] == [1]


def test_bad_timestamp_is_a_usage_error(populated, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["dump", populated, "--since", "last tuesday"])
    assert excinfo.value.code == 2
    assert "not an ISO 8601 timestamp" in capsys.readouterr().err


def test_compact_drops_tombstones(populated, capsys, series_path):
    before = series_path.read_text().count("\n")
    assert main(["compact", populated]) == 0
    assert f"compacted {populated}: 2 units" in capsys.readouterr().out
    assert series_path.read_text().count("\n") == 2 < before

    with Series.open(series_path) as series:
        assert [r.sequence_id for r in series.all_records()] == [1, 2]
        assert series.next_sequence_id == 3


def test_missing_series_is_an_error(tmp_path, capsys):
    missing = tmp_path / "nope.jsonl"
    assert main(["stats", str(missing)]) == 1
    assert "no series at" in capsys.readouterr().err
    assert not missing.exists()
