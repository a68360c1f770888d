"""
Tests for the JSON state store, including legacy torrents.json migration.
"""

import json
import os

import pytest

from torrent_bridge.exceptions import StoreError
from torrent_bridge.models import StoredEntry
from torrent_bridge.store import CLEANED_FILE, ENTRIES_FILE, PAUSED_FILE, StateStore

from conftest import HASH_A, HASH_B, MAGNET_A, MAGNET_B


def write_json(store, filename, data):
    os.makedirs(store.directory, exist_ok=True)
    with open(os.path.join(store.directory, filename), "w") as f:
        json.dump(data, f)


class TestEntries:
    def test_missing_files_load_empty(self, store):
        assert store.load_entries() == []
        assert store.load_paused() == set()
        assert store.load_cleaned() == set()

    def test_round_trip_uses_camel_case_on_disk(self, store):
        entries = [StoredEntry(key=HASH_A, magnet=MAGNET_A, save_path="/dl/movies", category="movies")]
        store.save_entries(entries)

        with open(os.path.join(store.directory, ENTRIES_FILE)) as f:
            on_disk = json.load(f)
        assert on_disk == [{"key": HASH_A, "magnet": MAGNET_A, "savePath": "/dl/movies", "category": "movies"}]
        assert store.load_entries() == entries

    def test_migrates_legacy_shapes(self, store):
        write_json(store, ENTRIES_FILE, [
            {"magnet": MAGNET_A, "savePath": "/dl"},
            {"magnet": MAGNET_B, "savePath": "/dl/tv", "tags": ["tv", "anime"]},
            {"magnet": "magnet:?dn=nohash", "savePath": "/dl", "category": "misc"},
        ])

        entries = store.load_entries()

        assert [e.key for e in entries] == [HASH_A, HASH_B, "magnet:?dn=nohash"]
        assert entries[0].category is None
        assert entries[1].category == "anime"
        assert entries[2].category == "misc"

    def test_corrupt_file_loads_empty(self, store):
        os.makedirs(store.directory, exist_ok=True)
        with open(os.path.join(store.directory, ENTRIES_FILE), "w") as f:
            f.write("{not json")
        assert store.load_entries() == []

    def test_malformed_items_are_skipped(self, store):
        write_json(store, ENTRIES_FILE, [{"savePath": "/dl"}, "junk", {"magnet": MAGNET_A, "savePath": "/dl"}])
        assert [e.key for e in store.load_entries()] == [HASH_A]


class TestKeySets:
    def test_paused_and_cleaned_are_sorted_arrays(self, store):
        store.save_paused({HASH_B, HASH_A})
        store.save_cleaned([HASH_A])

        with open(os.path.join(store.directory, PAUSED_FILE)) as f:
            assert json.load(f) == [HASH_A, HASH_B]
        with open(os.path.join(store.directory, CLEANED_FILE)) as f:
            assert json.load(f) == [HASH_A]
        assert store.load_paused() == {HASH_A, HASH_B}

    def test_save_leaves_no_temp_files(self, store):
        store.save_paused([HASH_A])
        store.save_paused([HASH_B])
        assert sorted(os.listdir(store.directory)) == [PAUSED_FILE]
        assert store.load_paused() == {HASH_B}

    def test_write_failure_raises_store_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")
        store = StateStore(str(blocker / "state"))
        with pytest.raises(StoreError):
            store.save_cleaned([HASH_A])
