"""SQLite implementation of BaseUriStore."""

import sqlite3
from datetime import datetime
from pathlib import Path

from reloc.types import BaseUriCacheEntry

SCHEMA = """
CREATE TABLE IF NOT EXISTS base_uris (
    prefix_key TEXT PRIMARY KEY,
    artifact_prefix TEXT NOT NULL,
    local_prefix TEXT NOT NULL,
    learned_at TEXT NOT NULL
);
"""


class SQLiteBaseUriStore:
    """SQLite-based base-URI store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def initialize(self) -> None:
        """Initialize the database schema."""
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def load_entries(self) -> list[BaseUriCacheEntry]:
        rows = self.conn.execute(
            "SELECT artifact_prefix, local_prefix FROM base_uris ORDER BY learned_at, rowid"
        ).fetchall()
        return [
            BaseUriCacheEntry(
                artifact_prefix=row["artifact_prefix"],
                local_prefix=row["local_prefix"],
            )
            for row in rows
        ]

    def save_entry(self, entry: BaseUriCacheEntry, key: str) -> None:
        self.conn.execute(
            """
            INSERT INTO base_uris (prefix_key, artifact_prefix, local_prefix, learned_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(prefix_key) DO UPDATE SET
                artifact_prefix = excluded.artifact_prefix,
                local_prefix = excluded.local_prefix,
                learned_at = excluded.learned_at
            """,
            (key, entry.artifact_prefix, entry.local_prefix, datetime.now().isoformat()),
        )
        self.conn.commit()

    def delete_all(self) -> None:
        self.conn.execute("DELETE FROM base_uris")
        self.conn.commit()
