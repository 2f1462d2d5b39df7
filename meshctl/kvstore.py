"""A small SQLite-backed key-value table and JSON column helpers."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from typing import Any, Union

DB_VERSION = "1"


class ValueNotFoundError(LookupError):
    """Raised when a key is not present in the store."""

    def __init__(self, key: str):
        super().__init__("not found")
        self.key = key


class KVStore:
    """Key-value pairs kept in the ``kvs`` table of an SQLite database."""

    def __init__(self, path: Union[str, os.PathLike]):
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            os.fspath(path), check_same_thread=False, isolation_level=None
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=1")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def __enter__(self) -> "KVStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def initialize(self) -> None:
        """Create the table if needed and record the schema version."""
        with self._lock:
            self._conn.execute("CREATE TABLE IF NOT EXISTS kvs (key TEXT, value TEXT)")
        self.set_value("db_version", DB_VERSION)

    def get_value(self, key: str) -> str:
        """Return the value stored for ``key``."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kvs WHERE key = ? LIMIT 1", (key,)
            ).fetchone()
        if row is None:
            raise ValueNotFoundError(key)
        return row[0]

    def set_value(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any earlier value."""
        with self._lock:
            try:
                self.get_value(key)
            except ValueNotFoundError:
                self._conn.execute(
                    "INSERT INTO kvs (key, value) VALUES (?, ?)", (key, value)
                )
            else:
                self._conn.execute(
                    "UPDATE kvs SET value = ? WHERE key = ?", (value, key)
                )

    def ping(self) -> None:
        """Raise if the database cannot be queried."""
        with self._lock:
            self._conn.execute("SELECT 1").fetchone()

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def encode_json_column(value: Any) -> str:
    """Serialise a value for storage in a JSON text column."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def decode_json_column(data: Union[str, bytes, bytearray]) -> Any:
    """Decode a value read from a JSON text column."""
    if isinstance(data, (bytes, bytearray)):
        return json.loads(bytes(data))
    if isinstance(data, str):
        return json.loads(data)
    raise TypeError(f"unexpected data type {type(data).__name__}")