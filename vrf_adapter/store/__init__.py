"""
vrf_adapter.store
=================

Persistence for the scan cursor.

The engine never touches storage itself: a runner loads the cursor before an
invocation and saves the returned one afterwards. Backends only need the
string key-value interface below, the same shape automation runtimes expose
to user functions (``get(key) -> str | None`` and ``set(key, value)``).

Backends:
  • MemoryStore  — dict-backed, for tests and one-shot runs
  • SQLiteStore  — file-backed (``store.sqlite``)

``open_store(uri)`` picks one from a URI: ``memory://`` or
``sqlite:///path/to/cursor.db`` (a bare path also means SQLite).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

from ..constants import CURSOR_KEY
from ..errors import ConfigError
from ..types import Cursor

logger = logging.getLogger(__name__)


class CursorStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        """Return the stored string for *key*, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """In-memory CursorStore."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def close(self) -> None:
        pass


def load_cursor(store: CursorStore, key: str = CURSOR_KEY) -> Optional[Cursor]:
    """Read the persisted cursor; None when nothing has been stored yet."""
    raw = store.get(key)
    if raw is None or raw == "":
        return None
    try:
        return Cursor(int(raw))
    except ValueError as e:
        raise ConfigError(f"corrupt cursor value under {key!r}: {raw!r}") from e


def save_cursor(store: CursorStore, cursor: Cursor, key: str = CURSOR_KEY) -> None:
    store.set(key, str(cursor.last_processed_block))
    logger.debug("cursor saved", extra={"block": cursor.last_processed_block})


def open_store(uri: str) -> CursorStore:
    if uri in ("memory://", ":memory:"):
        return MemoryStore()
    if uri.startswith("sqlite:///"):
        path = uri[len("sqlite:///") :]
    elif "://" in uri:
        raise ConfigError(f"unsupported cursor store URI: {uri}")
    else:
        path = uri
    from .sqlite import SQLiteStore

    return SQLiteStore(path)


__all__ = ["CursorStore", "MemoryStore", "load_cursor", "save_cursor", "open_store"]
