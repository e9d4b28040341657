"""
Feed cache facade - the persistent store behind the reader.

Every public method either returns its result or raises CacheError; the
underlying sqlite3 errors never escape this module.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from ..exceptions import CacheError
from ..feeds import Feed
from .connection import DatabaseConnection
from .entry_repository import EntryRepository
from .feed_repository import FeedRepository

logger = logging.getLogger(__name__)


@contextmanager
def _cache_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        raise CacheError(f"Failed to {action}: {e}") from e


class FeedCache:
    """
    Persistent feed store keyed by feed URL.

    Saving a feed merges it into what is already stored: the feed row is
    updated in place, entries are upserted by (title, published), and entries
    that dropped out of the remote feed are kept along with their read flags.
    """

    def __init__(self, db_path: Path | str):
        with _cache_errors(f"open cache at {db_path}"):
            self._connection = DatabaseConnection(db_path)

        self.feeds = FeedRepository(self._connection)
        self.entries = EntryRepository(self._connection)

    def close(self):
        with _cache_errors("close cache"):
            self._connection.close()

    # ─────────────────────────────────────────────────────────────
    # Feeds
    # ─────────────────────────────────────────────────────────────

    def save_feed(self, feed: Feed, position: int = 0):
        """Merge a freshly fetched feed into the cache."""
        with _cache_errors(f"save feed {feed.url}"):
            with self._connection.conn() as conn:
                feed_id = self.feeds.upsert(conn, feed, position)
                added = self.entries.upsert_all(conn, feed_id, feed.entries)
        logger.debug(f"Saved {feed.url}: {len(feed.entries)} entries, {added} new")

    def load_feed(self, url: str) -> Feed | None:
        with _cache_errors(f"load feed {url}"):
            db_feed = self.feeds.get_by_url(url)
            if db_feed is None:
                return None
            entries = self.entries.get_for_feed(db_feed.id)

        return Feed(url=db_feed.url, title=db_feed.title, entries=entries, tags=db_feed.tags)

    def load_all_feeds(self) -> list[Feed]:
        """Every cached feed, in stored position order."""
        with _cache_errors("load feeds"):
            db_feeds = self.feeds.get_all()
            grouped = self.entries.get_grouped_by_feed()

        return [
            Feed(
                url=db_feed.url,
                title=db_feed.title,
                entries=grouped.get(db_feed.id, []),
                tags=db_feed.tags,
            )
            for db_feed in db_feeds
        ]

    def has_feed(self, url: str) -> bool:
        with _cache_errors(f"look up feed {url}"):
            return self.feeds.exists(url)

    def get_feed_id(self, url: str) -> int | None:
        """Internal row ID of a feed, stable across saves."""
        with _cache_errors(f"look up feed {url}"):
            db_feed = self.feeds.get_by_url(url)
        return db_feed.id if db_feed else None

    def get_last_fetched(self, url: str) -> datetime | None:
        with _cache_errors(f"look up feed {url}"):
            return self.feeds.get_last_fetched(url)

    def delete_feed(self, url: str) -> bool:
        with _cache_errors(f"delete feed {url}"):
            return self.feeds.delete(url)

    def clear_all(self):
        with _cache_errors("clear cache"):
            self.feeds.delete_all()

    # ─────────────────────────────────────────────────────────────
    # Read state
    # ─────────────────────────────────────────────────────────────

    def set_entry_read(self, url: str, title: str, published: str | None, read: bool) -> bool:
        """Set one entry's read flag. Returns False when no entry matched."""
        with _cache_errors(f"update read state in {url}"):
            return self.entries.set_read(url, title, published, read) > 0

    def mark_entry_read(self, url: str, title: str, published: str | None) -> bool:
        return self.set_entry_read(url, title, published, True)

    def mark_entry_unread(self, url: str, title: str, published: str | None) -> bool:
        return self.set_entry_read(url, title, published, False)

    def mark_feed_read(self, url: str, read: bool = True) -> int:
        """Set the read flag on every entry of a feed. Returns count updated."""
        with _cache_errors(f"update read state in {url}"):
            return self.entries.set_feed_read(url, read)
