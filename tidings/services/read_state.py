"""
Read-state synchronization.

The read flag of an entry lives in three places: the cache, the canonical
feed set, and the display feeds (where query feeds hold their own copies).
Every read-state change goes through ReadStateSynchronizer so the three stay
in step.
"""

import logging

from ..database import FeedCache
from ..exceptions import CacheError
from ..feeds import Feed, FeedEntry
from .display import DisplayFeed, QueryFeed, RegularFeed

logger = logging.getLogger(__name__)


class ReadStateSynchronizer:
    """Writes read-state changes to the cache and patches in-memory copies."""

    def __init__(self, cache: FeedCache):
        self.cache = cache

    def resolve_owner(
        self,
        feeds: list[Feed],
        display_feed: DisplayFeed,
        entry: FeedEntry
    ) -> Feed | None:
        """
        Find the canonical feed that owns an entry shown in a display feed.

        Query feed entries carry the owner's URL. Copies without one fall back
        to feed_title, preferring a same-titled feed that holds the entry.
        """
        if isinstance(display_feed, RegularFeed):
            url = display_feed.feed.url
            return next((feed for feed in feeds if feed.url == url), None)

        if isinstance(display_feed, QueryFeed):
            if entry.feed_url is not None:
                owner = next((feed for feed in feeds if feed.url == entry.feed_url), None)
                if owner is not None:
                    return owner
            if entry.feed_title is None:
                return None
            titled = [feed for feed in feeds if feed.title == entry.feed_title]
            return next(
                (feed for feed in titled if feed.find_entry(entry.title, entry.published) is not None),
                titled[0] if titled else None,
            )

        raise TypeError(f"Unknown display feed: {display_feed!r}")

    def set_read(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        feed_url: str,
        title: str,
        published: str | None,
        read: bool
    ) -> bool:
        """
        Persist one entry's read flag and copy it into every in-memory view.

        A cache failure is logged and the in-memory views are still updated.
        Returns False if the feed set has no such entry.
        """
        try:
            if not self.cache.set_entry_read(feed_url, title, published, read):
                logger.warning(f"No cached entry '{title}' in {feed_url}")
        except CacheError as e:
            logger.error(f"Failed to persist read state for '{title}': {e}")

        owner = next((feed for feed in feeds if feed.url == feed_url), None)
        if owner is None:
            return False
        if not self._patch(owner, display_feeds, title, published, read):
            return False

        logger.debug(f"Set read={read} for '{title}' in {feed_url}")
        return True

    def _patch(
        self,
        owner: Feed,
        display_feeds: list[DisplayFeed],
        title: str,
        published: str | None,
        read: bool
    ) -> bool:
        """Copy one entry's read flag into the canonical feed and every display copy."""
        canonical = owner.find_entry(title, published)
        if canonical is None:
            return False
        canonical.read = read

        key = canonical.key
        for display_feed in display_feeds:
            if isinstance(display_feed, RegularFeed):
                if display_feed.feed.url != owner.url:
                    continue
                entry = display_feed.feed.find_entry(title, published)
                if entry is not None:
                    entry.read = read
            elif isinstance(display_feed, QueryFeed):
                for entry in display_feed.entries:
                    if entry.key == key and _copied_from(entry, owner):
                        entry.read = read
        return True

    def mark_read(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        display_feed: DisplayFeed,
        entry: FeedEntry
    ) -> bool:
        """Mark an entry read. Already-read entries are left untouched."""
        if entry.read:
            return False
        return self._set_from_display(feeds, display_feeds, display_feed, entry, True)

    def toggle_read(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        display_feed: DisplayFeed,
        entry: FeedEntry
    ) -> bool:
        return self._set_from_display(feeds, display_feeds, display_feed, entry, not entry.read)

    def set_all_read(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        display_feed: DisplayFeed,
        read: bool = True
    ) -> int:
        """Set the read flag on every entry of a display feed. Returns count changed."""
        if isinstance(display_feed, RegularFeed):
            return self._set_feed_read(feeds, display_feeds, display_feed.feed.url, read)

        changed = 0
        for entry in list(display_feed.entries):
            if entry.read == read:
                continue
            if self._set_from_display(feeds, display_feeds, display_feed, entry, read):
                changed += 1
        return changed

    def _set_from_display(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        display_feed: DisplayFeed,
        entry: FeedEntry,
        read: bool
    ) -> bool:
        owner = self.resolve_owner(feeds, display_feed, entry)
        if owner is None:
            logger.warning(f"Cannot find the feed owning '{entry.title}'")
            return False
        return self.set_read(
            feeds, display_feeds, owner.url, entry.title, entry.published, read
        )

    def _set_feed_read(
        self,
        feeds: list[Feed],
        display_feeds: list[DisplayFeed],
        feed_url: str,
        read: bool
    ) -> int:
        """One bulk cache write for a whole feed, then patch memory entry by entry."""
        try:
            self.cache.mark_feed_read(feed_url, read)
        except CacheError as e:
            logger.error(f"Failed to persist read state for {feed_url}: {e}")

        owner = next((feed for feed in feeds if feed.url == feed_url), None)
        if owner is None:
            return 0

        changed = 0
        for entry in owner.entries:
            if entry.read == read:
                continue
            self._patch(owner, display_feeds, entry.title, entry.published, read)
            changed += 1
        logger.debug(f"Set read={read} for {changed} entries in {feed_url}")
        return changed


def _copied_from(entry: FeedEntry, owner: Feed) -> bool:
    if entry.feed_url is not None:
        return entry.feed_url == owner.url
    return entry.feed_title == owner.title
