import json
from datetime import datetime

import pytest

from tracker_server.portfolio.allocation import AllocationEngine
from tracker_server.portfolio.models import DuplicateSymbolError, Holding, HoldingNotFoundError
from tracker_server.portfolio.store import InMemoryHoldingStore, JsonFileHoldingStore


def test_in_memory_store_keeps_insertion_order_and_unique_symbols() -> None:
    store = InMemoryHoldingStore()
    store.insert(Holding("MSFT"))
    store.insert(Holding("AAPL"))

    with pytest.raises(DuplicateSymbolError):
        store.insert(Holding("MSFT"))

    assert [holding.symbol for holding in store.list()] == ["MSFT", "AAPL"]


def test_delete_requires_the_stored_object() -> None:
    stored = Holding("AAPL", 1.0)
    store = InMemoryHoldingStore([stored])

    with pytest.raises(HoldingNotFoundError):
        store.delete(Holding("AAPL", 1.0))

    store.delete(stored)
    assert store.list() == []


def test_json_store_persists_engine_mutations(tmp_path) -> None:
    path = tmp_path / "state" / "holdings.json"
    added = datetime(2024, 1, 2, 3, 4, 5)
    engine = AllocationEngine(JsonFileHoldingStore(path), clock=lambda: added)
    engine.add_holding("aapl")
    engine.add_holding("msft")
    engine.update_proportion("MSFT", 0.25)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert [row["symbol"] for row in payload["holdings"]] == ["AAPL", "MSFT"]
    assert not (path.parent / "holdings.json.tmp").exists()

    reloaded = JsonFileHoldingStore(path).list()
    assert [holding.symbol for holding in reloaded] == ["AAPL", "MSFT"]
    assert reloaded[0].target_proportion == pytest.approx(0.75)
    assert reloaded[1].target_proportion == pytest.approx(0.25)
    assert reloaded[0].added_at == added


def test_json_store_starts_empty_when_file_missing(tmp_path) -> None:
    store = JsonFileHoldingStore(tmp_path / "missing.json")
    assert store.list() == []
    assert not (tmp_path / "missing.json").exists()


def test_json_store_accepts_bare_list_payload(tmp_path) -> None:
    path = tmp_path / "holdings.json"
    path.write_text(json.dumps([{"symbol": "GOOG", "target_proportion": 1.0}, {"note": "skipped"}]), encoding="utf-8")

    store = JsonFileHoldingStore(path)
    assert [(holding.symbol, holding.target_proportion) for holding in store.list()] == [("GOOG", 1.0)]


def test_json_store_cleans_up_hand_edited_rows(tmp_path) -> None:
    path = tmp_path / "holdings.json"
    rows = [
        {"symbol": "aapl ", "target_proportion": 1.5},
        {"symbol": "MSFT", "target_proportion": -0.5},
        {"symbol": "AAPL", "target_proportion": 0.3},
        {"symbol": "   ", "target_proportion": 0.2},
    ]
    path.write_text(json.dumps({"holdings": rows}), encoding="utf-8")

    store = JsonFileHoldingStore(path)
    assert [(holding.symbol, holding.target_proportion) for holding in store.list()] == [("AAPL", 1.0), ("MSFT", 0.0)]

    engine = AllocationEngine(store)
    with pytest.raises(DuplicateSymbolError):
        engine.add_holding("AAPL")
    engine.remove_holding("aapl")
    assert [(holding.symbol, holding.target_proportion) for holding in store.list()] == [("MSFT", 1.0)]


def test_json_store_normalizes_loaded_proportions(tmp_path) -> None:
    path = tmp_path / "holdings.json"
    rows = [{"symbol": "A", "target_proportion": 0.2}, {"symbol": "B", "target_proportion": 0.5}]
    path.write_text(json.dumps({"holdings": rows}), encoding="utf-8")

    loaded = JsonFileHoldingStore(path).list()
    assert loaded[0].target_proportion == pytest.approx(0.2)
    assert loaded[1].target_proportion == pytest.approx(0.8)
