import os

import pytest

from vrf_adapter.constants import CURSOR_KEY
from vrf_adapter.errors import ConfigError
from vrf_adapter.store import MemoryStore, load_cursor, open_store, save_cursor
from vrf_adapter.store.sqlite import SQLiteStore
from vrf_adapter.types import Cursor


def test_memory_store_roundtrip():
    store = MemoryStore()
    assert load_cursor(store) is None
    save_cursor(store, Cursor(123))
    assert store.get(CURSOR_KEY) == "123"
    assert load_cursor(store) == Cursor(123)


def test_empty_and_corrupt_values():
    assert load_cursor(MemoryStore({CURSOR_KEY: ""})) is None
    with pytest.raises(ConfigError):
        load_cursor(MemoryStore({CURSOR_KEY: "twelve"}))
    with pytest.raises(ValueError):
        load_cursor(MemoryStore({CURSOR_KEY: "-4"}))


def test_sqlite_store_persists_across_connections(tmp_path):
    path = str(tmp_path / "nested" / "cursor.db")
    with SQLiteStore(path) as store:
        save_cursor(store, Cursor(7))
        save_cursor(store, Cursor(8))
    assert os.path.exists(path)
    with SQLiteStore(path) as store:
        assert load_cursor(store) == Cursor(8)
        store.delete(CURSOR_KEY)
        assert store.get(CURSOR_KEY) is None


def test_sqlite_in_memory():
    store = SQLiteStore(":memory:")
    store.set("k", "v")
    assert store.get("k") == "v"
    store.close()


def test_open_store_uris(tmp_path):
    assert isinstance(open_store("memory://"), MemoryStore)
    s = open_store(f"sqlite:///{tmp_path}/a.db")
    assert isinstance(s, SQLiteStore) and s.path == f"{tmp_path}/a.db"
    s.close()
    s = open_store(str(tmp_path / "b.db"))
    assert isinstance(s, SQLiteStore)
    s.close()
    with pytest.raises(ConfigError):
        open_store("redis://localhost:6379/0")
