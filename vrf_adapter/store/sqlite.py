"""
SQLite-backed CursorStore.

A single table of text keys and text values. Every ``set`` is its own
transaction, so a crash between invocations leaves either the old or the new
cursor on disk, never a torn value.
"""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key   TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


@dataclass
class SQLiteStore:
    """
    Parameters
    ----------
    path : str
        Database file; parent directories are created if needed.
        ``":memory:"`` gives a private in-memory database.

    Example
    -------
    >>> store = SQLiteStore("/tmp/vrf-cursor.db")
    >>> store.set("lastBlockNumber", "1234")
    >>> store.get("lastBlockNumber")
    '1234'
    >>> store.close()
    """

    path: str

    def __post_init__(self) -> None:
        if self.path != ":memory:":
            _ensure_dir(self.path)
        # autocommit; writes are wrapped explicitly in transaction()
        self._conn = sqlite3.connect(self.path, isolation_level=None, timeout=30.0)
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        _init_schema(self._conn)

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return str(row[0]) if row else None

    def set(self, key: str, value: str) -> None:
        with self.transaction():
            self._conn.execute("INSERT OR REPLACE INTO kv(key, value) VALUES(?, ?)", (key, str(value)))

    def delete(self, key: str) -> None:
        with self.transaction():
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """BEGIN IMMEDIATE; commits on success, rolls back on error."""
        self._conn.execute("BEGIN IMMEDIATE;")
        try:
            yield
        except Exception:
            self._conn.execute("ROLLBACK;")
            raise
        else:
            self._conn.execute("COMMIT;")

    def close(self) -> None:
        self._conn.close()


__all__ = ["SQLiteStore"]
