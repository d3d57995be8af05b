"""Unit tests for the path-addressed history store."""

from __future__ import annotations

import json

import pytest

from datastore.history_store import HistoryStore, history_path


def test_set_and_get_round_trip_returns_deep_copy() -> None:
    store = HistoryStore(name="history")
    store.set("history/tanks/t1/a", {"distance": 1.5, "tags": ["x"]})

    fetched = store.get("history/tanks/t1/a")
    assert fetched == {"distance": 1.5, "tags": ["x"]}

    # Mutating the fetched value should not affect stored data
    fetched["tags"].append("y")
    assert store.get("history/tanks/t1/a") == {"distance": 1.5, "tags": ["x"]}


def test_get_returns_none_when_missing() -> None:
    store = HistoryStore(name="history")

    assert store.get("history/tanks/missing") is None
    assert store.exists("history/tanks/missing") is False
    assert store.children("history/tanks/missing") == []


def test_children_lists_values_under_a_path() -> None:
    store = HistoryStore(name="history")
    store.set(history_path("tanks", "t1", "k1"), {"n": 1})
    store.set(history_path("tanks", "t1", "k2"), {"n": 2})
    store.set(history_path("tanks", "t2", "k1"), {"n": 3})

    values = sorted(item["n"] for item in store.children(history_path("tanks", "t1")))

    assert values == [1, 2]


def test_put_if_absent_only_writes_once() -> None:
    store = HistoryStore(name="history")

    assert store.put_if_absent("history/tanks/t1/k", {"n": 1}) is True
    assert store.put_if_absent("history/tanks/t1/k", {"n": 2}) is False
    assert store.get("history/tanks/t1/k") == {"n": 1}


def test_set_overwrites_existing_value() -> None:
    store = HistoryStore(name="history")
    store.set("history/tanks/t1/k", {"n": 1})
    store.set("history/tanks/t1/k", {"n": 2})

    assert store.get("history/tanks/t1/k") == {"n": 2}


@pytest.mark.parametrize("path", ["history/tanks/t.1", "history//t1", "history/$x", ""])
def test_invalid_paths_are_rejected(path: str) -> None:
    store = HistoryStore(name="history")

    with pytest.raises(ValueError):
        store.set(path, {"n": 1})


def test_writes_persist_to_disk_and_reload(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = HistoryStore(name="history", persistence_path=path)

    store.set("history/valves/v1/k", {"battery": 90})

    assert path.exists()
    payload = json.loads(path.read_text())
    assert payload["history"]["valves"]["v1"]["k"] == {"battery": 90}

    reloaded = HistoryStore(name="history", persistence_path=path)
    assert reloaded.get("history/valves/v1/k") == {"battery": 90}


def test_corrupt_persistence_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json")

    store = HistoryStore(name="history", persistence_path=path)

    assert store.get("history") is None
