"""SQLiteStorage: key-value table in a single database file, using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..core.storage import KeyValueStorage, entry_size
from ..types import StorageError

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    size INTEGER NOT NULL DEFAULT 0
);
"""


class SQLiteStorage(KeyValueStorage):
    """Persist values as rows of a ``kv`` table."""

    def __init__(self, db_path: str | Path, quota_bytes: int | None = None) -> None:
        self.db_path = Path(db_path)
        self.quota_bytes = quota_bytes
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def load(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}': {e}", key=key) from e
        return row["value"] if row else None

    def save(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        size = entry_size(key, value)
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, size) VALUES (?, ?, ?)",
                (key, value, size),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write '{key}': {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to remove '{key}': {e}", key=key) from e

    def keys(self) -> list[str]:
        try:
            rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list keys: {e}") from e
        return [row["key"] for row in rows]

    def usage(self) -> int:
        try:
            row = self._conn.execute("SELECT COALESCE(SUM(size), 0) AS total FROM kv").fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to compute usage: {e}") from e
        return int(row["total"])
