"""Tests for in-process concurrency.

Covers: no lost puts under contention, readers always see a sorted,
complete snapshot while writers run, and readers never wait on the
mutation lock.
"""
from __future__ import annotations

import threading
import time

from emseries.criteria import everything, has_tags
from emseries.store.series import Series


def test_concurrent_puts_lose_nothing(series_path, fast_config, ride_factory, at_day):
    series = Series.open(series_path, config=fast_config)
    barrier = threading.Barrier(8)
    ids: list[int] = []
    ids_lock = threading.Lock()

    def writer(n):
        barrier.wait(timeout=5.0)
        for i in range(50):
            seq = series.put(ride_factory(at_day(i, hour=n), notes=f"{n}-{i}"))
            with ids_lock:
                ids.append(seq)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30.0)

    assert sorted(ids) == list(range(400))
    assert len(series) == 400
    series.close()

    with Series.open(series_path, config=fast_config) as reopened:
        records = reopened.all_records()
    assert len(records) == 400
    keys = [(r.timestamp, r.sequence_id) for r in records]
    assert keys == sorted(keys)


def test_readers_see_consistent_snapshots(series_path, fast_config, ride_factory, at_day):
    series = Series.open(series_path, config=fast_config)
    for i in range(100):
        series.put(ride_factory(at_day(i), labels={"seed"}))

    stop = threading.Event()
    problems: list[str] = []

    def reader():
        while not stop.is_set():
            found = series.search(everything())
            keys = [(r.timestamp, r.sequence_id) for r in found]
            if keys != sorted(keys):
                problems.append("unsorted result")
            seeds = sum(1 for r in found if "seed" in r.tags)
            if seeds not in (0, 100):
                problems.append(f"saw a half-applied remove ({seeds} seeds)")

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    try:
        for i in range(30):
            series.put(ride_factory(at_day(200 + i), labels={"extra"}))
        series.remove(has_tags({"seed"}))
        for i in range(30):
            series.put(ride_factory(at_day(300 + i), labels={"extra"}))
    finally:
        stop.set()
        for t in readers:
            t.join(timeout=10.0)
        series.close()

    assert problems == []


def test_search_does_not_wait_for_writers(series_path, fast_config, ride_factory, at_day):
    series = Series.open(series_path, config=fast_config)
    series.put(ride_factory(at_day(0)))
    done = threading.Event()
    results: list[int] = []

    def reader():
        results.append(len(series.search(everything())))
        done.set()

    # Simulate a long compaction by holding the mutation lock.
    with series._lock:
        t = threading.Thread(target=reader)
        start = time.perf_counter()
        t.start()
        finished = done.wait(timeout=2.0)
        elapsed = time.perf_counter() - start
    t.join(timeout=5.0)
    series.close()

    assert finished, "search blocked behind the mutation lock"
    assert elapsed < 2.0
    assert results == [1]


def test_puts_wait_for_each_other(series_path, fast_config, ride_factory, at_day):
    series = Series.open(series_path, config=fast_config)
    entered = threading.Event()

    def writer():
        series.put(ride_factory(at_day(1)))
        entered.set()

    with series._lock:
        t = threading.Thread(target=writer)
        t.start()
        blocked = not entered.wait(timeout=0.2)
    t.join(timeout=5.0)
    series.close()

    assert blocked, "put ran while another mutation held the lock"
    assert entered.is_set()
