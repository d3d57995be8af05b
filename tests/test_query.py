from __future__ import annotations

from datetime import date, datetime

import pytest

from datastore.history_store import HistoryStore, history_path
from services.query import HistoryQueryEngine, end_bound_ms, start_bound_ms

NOW_SECONDS = 1_750_000_000.0


def _local_ms(*parts: int) -> int:
    return int(datetime(*parts).timestamp() * 1000)


@pytest.fixture()
def store() -> HistoryStore:
    return HistoryStore(name="test-history")


@pytest.fixture()
def engine(store: HistoryStore) -> HistoryQueryEngine:
    return HistoryQueryEngine(store=store, clock=lambda: NOW_SECONDS)


def _put(store: HistoryStore, key: str, record: dict, device_id: str = "t1") -> None:
    store.set(history_path("tanks", device_id, key), record)


def test_empty_history_returns_empty_list(engine: HistoryQueryEngine) -> None:
    assert engine.query("t1", "tanks") == []
    assert engine.fetch_raw("t1", "tanks") == []


def test_results_are_newest_first(engine: HistoryQueryEngine, store: HistoryStore) -> None:
    for day in (1, 3, 2):
        ts = _local_ms(2024, 1, day, 12)
        _put(store, f"k{day}", {"timestamp": ts, "date": "x", "originalTimestamp": ts})

    entries = engine.query("t1", "tanks")

    assert [entry.timestamp for entry in entries] == [
        _local_ms(2024, 1, 3, 12),
        _local_ms(2024, 1, 2, 12),
        _local_ms(2024, 1, 1, 12),
    ]


def test_date_range_selects_matching_entries(engine: HistoryQueryEngine, store: HistoryStore) -> None:
    for day in (1, 5, 9):
        ts = _local_ms(2024, 3, day, 8, 30)
        _put(store, f"k{day}", {"timestamp": ts, "date": "x", "distance": day})

    entries = engine.query("t1", "tanks", start_date=date(2024, 3, 1), end_date=date(2024, 3, 2))

    assert [entry.distance for entry in entries] == [1]


def test_date_bounds_accept_iso_strings(engine: HistoryQueryEngine, store: HistoryStore) -> None:
    _put(store, "late", {"timestamp": _local_ms(2024, 3, 2, 23, 59, 30), "date": "x"})
    _put(store, "next", {"timestamp": _local_ms(2024, 3, 3, 0, 0, 1), "date": "x"})

    entries = engine.query("t1", "tanks", start_date="2024-03-02", end_date="2024-03-02")

    assert [entry.timestamp for entry in entries] == [_local_ms(2024, 3, 2, 23, 59, 30)]


def test_filter_is_skipped_when_no_timestamp_is_trustworthy(
    engine: HistoryQueryEngine, store: HistoryStore
) -> None:
    for counter in (5, 6, 7):
        _put(store, f"c{counter}", {"timestamp": counter, "originalTimestamp": counter})

    unfiltered = engine.query("t1", "tanks")
    filtered = engine.query("t1", "tanks", start_date=date(2024, 1, 1), end_date=date(2024, 1, 2))

    assert [entry.timestamp for entry in filtered] == [entry.timestamp for entry in unfiltered]
    assert len(filtered) == 3


def test_counter_sort_key_orders_synthesized_entries(
    engine: HistoryQueryEngine, store: HistoryStore
) -> None:
    # synthesized wall-clock order disagrees with the device counter order
    _put(store, "a", {"timestamp": 1_700_000_600_000, "originalTimestamp": 10, "date": "x"})
    _put(store, "b", {"timestamp": 1_700_000_000_000, "originalTimestamp": 30, "date": "x"})
    _put(store, "c", {"timestamp": 1_700_000_300_000, "originalTimestamp": 20, "date": "x"})

    entries = engine.query("t1", "tanks")

    assert [entry.original_timestamp for entry in entries] == [30, 20, 10]


def test_missing_timestamp_falls_back_to_now(engine: HistoryQueryEngine, store: HistoryStore) -> None:
    _put(store, "a", {"distance": 1.2})

    (entry,) = engine.query("t1", "tanks")

    assert entry.timestamp == 1_750_000_000_000
    assert entry.date == "2025-06-15T15:06:40.000Z"


def test_timestamp_recovered_from_original_timestamp(
    engine: HistoryQueryEngine, store: HistoryStore
) -> None:
    _put(store, "a", {"originalTimestamp": 1_700_000_000_000, "distance": 1.2})

    (entry,) = engine.query("t1", "tanks")

    assert entry.timestamp == 1_700_000_000_000


def test_legacy_flat_fields_are_folded_into_extensions(
    engine: HistoryQueryEngine, store: HistoryStore
) -> None:
    _put(store, "a", {"timestamp": 1_700_000_000_000, "date": "x", "battery": 91})

    (entry,) = engine.query("t1", "tanks")

    assert entry.extensions == {"battery": 91}
    assert entry.value("battery") == 91


def test_read_failure_returns_empty_list(
    engine: HistoryQueryEngine, store: HistoryStore, monkeypatch
) -> None:
    def broken_children(path):
        raise RuntimeError("offline")

    monkeypatch.setattr(store, "children", broken_children)

    assert engine.query("t1", "tanks") == []


def test_bounds_for_dates_and_datetimes() -> None:
    assert start_bound_ms(date(2024, 1, 1)) == _local_ms(2024, 1, 1)
    assert end_bound_ms(date(2024, 1, 1)) == _local_ms(2024, 1, 1, 23, 59, 59)
    assert end_bound_ms(datetime(2024, 1, 1, 6)) == _local_ms(2024, 1, 2, 6)
