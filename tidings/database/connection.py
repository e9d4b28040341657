"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

MEMORY = ":memory:"


class DatabaseConnection:
    """
    Owns the single SQLite handle used by the cache.

    The handle is opened once and reused; every `conn()` block is one
    transaction, committed on success and rolled back on error.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        if str(db_path) != MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(str(db_path))
        try:
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._init_schema()
        except BaseException:
            self._connection.close()
            raise

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection inside a transaction."""
        try:
            yield self._connection
            self._connection.commit()
        except BaseException:
            self._connection.rollback()
            raise

    def close(self):
        self._connection.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS feeds (
                    id INTEGER PRIMARY KEY,
                    url TEXT UNIQUE NOT NULL,
                    title TEXT NOT NULL,
                    last_fetched INTEGER NOT NULL,
                    tags TEXT,
                    position INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY,
                    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    published TEXT,
                    text TEXT NOT NULL,
                    links TEXT NOT NULL,
                    media TEXT NOT NULL,
                    read INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_feed_url ON feeds(url);
                CREATE INDEX IF NOT EXISTS idx_entries_feed ON entries(feed_id);
            """)

            # Migrations for caches created before read state and ordering existed
            self._migrate_add_column(connection, "feeds", "position", "INTEGER NOT NULL DEFAULT 0")
            self._migrate_add_column(connection, "entries", "read", "INTEGER NOT NULL DEFAULT 0")
            self._dedupe_entries(connection)

            connection.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_entries_identity
                ON entries(feed_id, title, COALESCE(published, ''))
            """)

    def _migrate_add_column(
        self,
        conn: sqlite3.Connection,
        table: str,
        column: str,
        column_type: str
    ):
        """Add a column to a table if it doesn't exist."""
        cursor = conn.execute(f"PRAGMA table_info({table})")
        columns = [row[1] for row in cursor.fetchall()]
        if column not in columns:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")

    def _dedupe_entries(self, conn: sqlite3.Connection):
        """Drop duplicate entry rows so the identity index can be created."""
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND name = 'idx_entries_identity'"
        ).fetchone()
        if row:
            return
        conn.execute("""
            DELETE FROM entries WHERE id NOT IN (
                SELECT MAX(id) FROM entries
                GROUP BY feed_id, title, COALESCE(published, '')
            )
        """)
