"""
Feed repository - operations on feed rows.
"""

import sqlite3
import time
from datetime import datetime

from ..feeds import Feed
from .connection import DatabaseConnection
from .converters import row_to_feed, tags_to_json
from .models import DBFeed


class FeedRepository:
    """Repository for feed row operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def upsert(self, conn: sqlite3.Connection, feed: Feed, position: int) -> int:
        """
        Insert or update the feed row for feed.url. Returns the feed ID.

        Existing rows are updated in place so their ID (and with it every
        entry referencing it) survives the refresh.
        """
        conn.execute(
            """INSERT INTO feeds (url, title, last_fetched, tags, position)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(url) DO UPDATE SET
                   title = excluded.title,
                   last_fetched = excluded.last_fetched,
                   tags = excluded.tags,
                   position = excluded.position""",
            (feed.url, feed.title, int(time.time()), tags_to_json(feed.tags), position)
        )
        row = conn.execute("SELECT id FROM feeds WHERE url = ?", (feed.url,)).fetchone()
        return row["id"]

    def get_by_url(self, url: str) -> DBFeed | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM feeds WHERE url = ?", (url,)).fetchone()
            return row_to_feed(row) if row else None

    def get_all(self) -> list[DBFeed]:
        """All feed rows in configured order."""
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM feeds ORDER BY position, id"
            ).fetchall()
            return [row_to_feed(row) for row in rows]

    def exists(self, url: str) -> bool:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM feeds WHERE url = ?", (url,)
            ).fetchone()
            return row["count"] > 0

    def get_last_fetched(self, url: str) -> datetime | None:
        feed = self.get_by_url(url)
        return feed.last_fetched if feed else None

    def delete(self, url: str) -> bool:
        """Delete a feed; its entries go with it through the foreign key."""
        with self._db.conn() as conn:
            cursor = conn.execute("DELETE FROM feeds WHERE url = ?", (url,))
            return cursor.rowcount > 0

    def delete_all(self):
        with self._db.conn() as conn:
            conn.execute("DELETE FROM entries")
            conn.execute("DELETE FROM feeds")
