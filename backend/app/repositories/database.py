from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# Both caches are keyed sets. The uniqueness constraints let a concurrent
# second resolution of the same identifier collapse into a no-op insert.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS unprocessable_request (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    request TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS video_info (
    video_id TEXT PRIMARY KEY,
    channel_id TEXT NULL,
    title TEXT NULL,
    description TEXT NULL,
    category_id TEXT NULL,
    thumbnail TEXT NULL,
    published_at TEXT NULL
);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)
