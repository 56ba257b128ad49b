import json
from unittest.mock import MagicMock, patch

import pytest

from mcp_bonding_curve.storage import JsonFileStore, MemoryStore, Transaction


def test_memory_store_apply_and_delete():
    store = MemoryStore({"a": "1"})
    store.apply({"b": "2", "a": None})
    assert store.get("a") is None
    assert store.get("b") == "2"
    assert store.get_many(["a", "b", "c"]) == {"a": None, "b": "2", "c": None}
    assert store.keys() == ["b"]


def test_memory_store_keys_by_prefix():
    store = MemoryStore({"x/total_supply": "0", "x/total_reserve": "0", "y/total_supply": "3"})
    assert store.keys("x/") == ["x/total_reserve", "x/total_supply"]


def test_transaction_commits_on_clean_exit():
    store = MemoryStore()
    with Transaction(store) as tx:
        tx.set("a", "1")
        assert tx.get("a") == "1"
        assert store.get("a") is None
    assert tx.committed
    assert store.get("a") == "1"


def test_transaction_reads_through_and_deletes():
    store = MemoryStore({"a": "1", "b": "2"})
    with Transaction(store) as tx:
        assert tx.get("b") == "2"
        tx.delete("b")
        assert tx.get("b") is None
    assert store.get("b") is None
    assert store.get("a") == "1"


def test_transaction_rolls_back_in_reverse_order():
    store = MemoryStore({"a": "1"})
    calls = []

    with pytest.raises(RuntimeError, match="boom"):
        with Transaction(store) as tx:
            tx.set("a", "2")
            tx.on_rollback(lambda: calls.append("first"))
            tx.on_rollback(lambda: calls.append("second"))
            raise RuntimeError("boom")

    assert calls == ["second", "first"]
    assert store.get("a") == "1"
    assert not tx.committed


def test_failing_compensation_does_not_mask_original_error():
    store = MemoryStore()
    later = MagicMock()

    with pytest.raises(KeyError):
        with Transaction(store) as tx:
            tx.on_rollback(later)
            tx.on_rollback(MagicMock(side_effect=ValueError("undo failed")))
            raise KeyError("original")

    later.assert_called_once()


def test_commit_failure_runs_compensations():
    store = MagicMock()
    store.apply.side_effect = OSError("disk full")
    undo = MagicMock()

    with pytest.raises(OSError):
        with Transaction(store) as tx:
            tx.set("a", "1")
            tx.on_rollback(undo)

    undo.assert_called_once()


def test_json_file_store_persists(tmp_path):
    path = tmp_path / "state" / "store.json"
    store = JsonFileStore(path)
    store.apply({"inst/total_supply": "50", "inst/total_reserve": "100"})

    with open(path) as f:
        assert json.load(f) == {"inst/total_reserve": "100", "inst/total_supply": "50"}

    reloaded = JsonFileStore(path)
    assert reloaded.get_many(["inst/total_supply", "inst/total_reserve"]) == {
        "inst/total_supply": "50",
        "inst/total_reserve": "100",
    }


def test_json_file_store_keeps_previous_state_when_write_fails(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.apply({"a": "1"})

    with patch("mcp_bonding_curve.storage.os.replace", side_effect=OSError("read-only")):
        with pytest.raises(OSError):
            store.apply({"a": "2"})

    assert store.get("a") == "1"
    with open(path) as f:
        assert json.load(f) == {"a": "1"}
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]
