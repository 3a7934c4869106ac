"""
Contract tests for the Collection Store.

Uses pytest's tmp_path; no fixed paths are touched.
"""

import json

import pytest

from smartbridge.state.collection_store import CollectionStore


class TestCollectionStore:
    def test_empty_when_file_missing(self, tmp_path):
        store = CollectionStore(str(tmp_path / "missing.json"))

        assert store.get_ids() == []
        assert store.contains("x") is False

    def test_upsert_newest_first(self, collection):
        assert collection.upsert("first", added_at=1) is True
        assert collection.upsert("second", added_at=2) is True

        assert collection.get_ids() == ["second", "first"]

    def test_upsert_existing_moves_to_front(self, collection):
        collection.upsert("a", added_at=1)
        collection.upsert("b", added_at=2)

        assert collection.upsert("a") is False
        assert collection.get_ids() == ["a", "b"]

    def test_existing_record_keeps_added_at(self, collection):
        collection.upsert("a", added_at=111)
        collection.upsert("a", added_at=999)

        with open(collection.path) as f:
            records = json.load(f)
        assert records == [{"shareId": "a", "addedAt": 111}]

    def test_ids_are_trimmed(self, collection):
        collection.upsert("  spaced  ")

        assert collection.get_ids() == ["spaced"]
        assert collection.contains(" spaced") is True

    def test_empty_id_rejected(self, collection):
        with pytest.raises(ValueError):
            collection.upsert("   ")

    def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / "collection.json"
        path.write_text("{not json")

        assert CollectionStore(str(path)).get_ids() == []

    def test_unexpected_shape_loads_empty(self, tmp_path):
        path = tmp_path / "collection.json"
        path.write_text(json.dumps({"shareId": "a"}))

        assert CollectionStore(str(path)).get_ids() == []

    def test_bad_records_are_skipped(self, tmp_path):
        path = tmp_path / "collection.json"
        path.write_text(json.dumps([{"shareId": "ok"}, {"shareId": ""}, "junk", {"addedAt": 1}]))

        assert CollectionStore(str(path)).get_ids() == ["ok"]

    def test_no_temp_file_left_behind(self, collection, tmp_path):
        collection.upsert("a")

        assert not (tmp_path / "collection.json.tmp").exists()
        assert (tmp_path / "collection.json").exists()

    def test_persists_across_instances(self, collection):
        collection.upsert("kept")

        assert CollectionStore(collection.path).get_ids() == ["kept"]
