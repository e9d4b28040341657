"""
Entry repository - entry upserts and read state.
"""

import json
import sqlite3

from ..feeds import FeedEntry
from .connection import DatabaseConnection
from .converters import row_to_entry


class EntryRepository:
    """Repository for entry operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def upsert_all(
        self,
        conn: sqlite3.Connection,
        feed_id: int,
        entries: list[FeedEntry]
    ) -> int:
        """
        Merge fetched entries into a feed. Returns the number of new entries.

        Entries are matched on (feed_id, title, published). New entries start
        unread; existing ones only get their content refreshed, and entries
        missing from this fetch are left alone.
        """
        before = self._count(conn, feed_id)
        conn.executemany(
            """INSERT INTO entries (feed_id, title, published, text, links, media, read)
               VALUES (?, ?, ?, ?, ?, ?, 0)
               ON CONFLICT(feed_id, title, COALESCE(published, '')) DO UPDATE SET
                   text = excluded.text,
                   links = excluded.links,
                   media = excluded.media""",
            [
                (
                    feed_id,
                    entry.title,
                    entry.published or None,
                    entry.text,
                    json.dumps(entry.links),
                    entry.media or "",
                )
                for entry in entries
            ]
        )
        return self._count(conn, feed_id) - before

    def _count(self, conn: sqlite3.Connection, feed_id: int) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS count FROM entries WHERE feed_id = ?", (feed_id,)
        ).fetchone()
        return row["count"]

    def get_for_feed(self, feed_id: int) -> list[FeedEntry]:
        """Entries of one feed, newest first, undated last."""
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM entries WHERE feed_id = ?
                   ORDER BY published DESC, id""",
                (feed_id,)
            ).fetchall()
            return [row_to_entry(row) for row in rows]

    def get_grouped_by_feed(self) -> dict[int, list[FeedEntry]]:
        """Entries of every feed keyed by feed ID, each list newest first."""
        grouped: dict[int, list[FeedEntry]] = {}
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM entries ORDER BY feed_id, published DESC, id"
            ).fetchall()
            for row in rows:
                grouped.setdefault(row["feed_id"], []).append(row_to_entry(row))
        return grouped

    def set_read(self, feed_url: str, title: str, published: str | None, read: bool) -> int:
        """
        Set the read flag of one entry. Returns the number of rows changed.

        A missing publish date matches only entries stored without one.
        """
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE entries SET read = ?
                   WHERE feed_id = (SELECT id FROM feeds WHERE url = ?)
                     AND title = ?
                     AND published IS ?""",
                (int(read), feed_url, title, published or None)
            )
            return cursor.rowcount

    def set_feed_read(self, feed_url: str, read: bool = True) -> int:
        """Set the read flag of every entry in a feed. Returns count updated."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE entries SET read = ?
                   WHERE feed_id = (SELECT id FROM feeds WHERE url = ?)""",
                (int(read), feed_url)
            )
            return cursor.rowcount
