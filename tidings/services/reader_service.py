"""
Reader service: the consumer side of a refresh.

Owns the authoritative feed set and its display projection, starts refreshes,
drains fetch messages without blocking, and writes fetched feeds to the cache.
All cache access happens here, on the consumer, never in fetch tasks.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from ..config import Config, FeedConfig, FeedSettings
from ..database import FeedCache
from ..exceptions import CacheError
from ..feeds import Feed, FeedParser
from ..messages import FeedError, FeedUpdate, FetchComplete, FetchingFeed, Replace, UpdateFeed
from ..tasks import refresh_all_feeds, refresh_single_feed
from .display import DisplayFeed, build_display_feeds
from .read_state import ReadStateSynchronizer

logger = logging.getLogger(__name__)

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


@dataclass
class LoadingState:
    is_loading: bool = False
    started_at: float = field(default_factory=time.monotonic)

    def start(self):
        self.is_loading = True
        self.started_at = time.monotonic()

    def stop(self):
        self.is_loading = False

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def spinner_frame(self) -> str:
        if not self.is_loading:
            return ""
        index = int(self.elapsed() * 1000 / 80) % len(SPINNER_FRAMES)
        return SPINNER_FRAMES[index]


def merge_in_memory(previous: Feed | None, fresh: Feed) -> Feed:
    """
    Merge a fetched feed into its previous in-memory copy.

    Used when the cache cannot be written: read flags carry over by entry
    identity and entries missing from the fetch are kept, as the cache would.
    """
    if previous is None:
        return fresh

    old_entries = {entry.key: entry for entry in previous.entries}
    entries = []
    seen = set()
    for entry in fresh.entries:
        old = old_entries.get(entry.key)
        entries.append(entry.copy(read=old.read if old else entry.read))
        seen.add(entry.key)
    entries.extend(entry for entry in previous.entries if entry.key not in seen)

    dated = sorted((e for e in entries if e.published), key=lambda e: e.published, reverse=True)
    undated = [e for e in entries if not e.published]
    return Feed(url=fresh.url, title=fresh.title, entries=dated + undated, tags=fresh.tags)


class ReaderService:
    """State and operations behind the interactive reader."""

    def __init__(
        self,
        config: Config,
        cache: FeedCache,
        settings: FeedSettings,
        parser: FeedParser | None = None,
    ):
        self.config = config
        self.cache = cache
        self.feed_configs: list[FeedConfig] = list(settings.feeds)
        self.query_configs = list(settings.queries)
        self.parser = parser or FeedParser(
            timeout=config.fetch_timeout, user_agent=config.user_agent
        )
        self.synchronizer = ReadStateSynchronizer(cache)
        self.updates: asyncio.Queue[FeedUpdate] = asyncio.Queue()

        self.feeds: list[Feed] = []
        self.display_feeds: list[DisplayFeed] = []
        self.loading = LoadingState()
        self.current_feed: str | None = None
        self.feed_errors: list[FeedError] = []
        self._refresh_task: asyncio.Task | None = None

    # ─────────────────────────────────────────────────────────────
    # Startup
    # ─────────────────────────────────────────────────────────────

    def load_cached(self):
        """Load configured feeds from the cache and rebuild the display."""
        try:
            cached = self.cache.load_all_feeds()
        except CacheError as e:
            logger.error(f"Failed to load cached feeds: {e}")
            cached = []

        configured = {feed_config.link for feed_config in self.feed_configs}
        self.feeds = self._ordered(
            self._apply_config(feed) for feed in cached if feed.url in configured
        )
        self.rebuild_display_feeds()

    def feeds_needing_fetch(self) -> list[FeedConfig]:
        """Configured feeds that have never been cached."""
        pending = []
        for feed_config in self.feed_configs:
            try:
                cached = self.cache.has_feed(feed_config.link)
            except CacheError as e:
                logger.error(f"Failed to check cache for {feed_config.link}: {e}")
                cached = False
            if not cached:
                pending.append(feed_config)
        return pending

    def start(self) -> bool:
        """
        Show cached feeds, then fetch what is missing (or everything when
        refresh_on_start is set). Must be called from a running event loop.
        """
        self.load_cached()
        pending = self.feed_configs if self.config.refresh_on_start else self.feeds_needing_fetch()
        if not pending:
            return False
        return self.refresh_feeds(pending)

    # ─────────────────────────────────────────────────────────────
    # Refresh
    # ─────────────────────────────────────────────────────────────

    def refresh_feeds(self, feed_configs: list[FeedConfig] | None = None) -> bool:
        """
        Start fetching feeds in the background.

        Returns False without doing anything if a refresh is already running.
        """
        if self.loading.is_loading:
            logger.debug("Refresh already in progress")
            return False

        configs = list(self.feed_configs if feed_configs is None else feed_configs)
        self._begin_refresh()
        self._refresh_task = asyncio.get_running_loop().create_task(
            refresh_all_feeds(configs, self.parser, self.updates)
        )
        self._refresh_task.add_done_callback(self._on_refresh_done)
        return True

    def refresh_feed(self, link: str) -> bool:
        """Start fetching a single configured feed."""
        feed_config = next((c for c in self.feed_configs if c.link == link), None)
        if feed_config is None:
            logger.warning(f"Cannot refresh unconfigured feed {link}")
            return False
        if self.loading.is_loading:
            return False

        self._begin_refresh()
        self._refresh_task = asyncio.get_running_loop().create_task(
            refresh_single_feed(feed_config, self.parser, self.updates)
        )
        self._refresh_task.add_done_callback(self._on_refresh_done)
        return True

    def _begin_refresh(self):
        self.loading.start()
        self.feed_errors.clear()
        self.current_feed = None

    def _on_refresh_done(self, task: asyncio.Task):
        if task.cancelled():
            self.updates.put_nowait(FetchComplete())
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Refresh task failed: {error!r}")
            self.updates.put_nowait(FetchComplete())

    async def wait_for_refresh(self):
        """Wait for the running refresh task, if any, to finish."""
        if self._refresh_task is not None:
            await asyncio.gather(self._refresh_task, return_exceptions=True)

    def drain_updates(self) -> int:
        """Handle every queued message without waiting. Returns the count handled."""
        handled = 0
        while True:
            try:
                update = self.updates.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.handle_feed_update(update)
            handled += 1
        return handled

    def handle_feed_update(self, update: FeedUpdate):
        if isinstance(update, Replace):
            self._absorb(update.feeds)
        elif isinstance(update, UpdateFeed):
            self._absorb([update.feed])
        elif isinstance(update, FetchingFeed):
            self.current_feed = update.name
        elif isinstance(update, FeedError):
            self.feed_errors.append(update)
        elif isinstance(update, FetchComplete):
            self.loading.stop()
            self.current_feed = None
        else:
            raise TypeError(f"Unknown feed update: {update!r}")

    def _absorb(self, fetched: list[Feed]):
        """
        Save fetched feeds, then reload them from the cache so read flags
        set earlier win over the always-unread fetched copies.
        """
        unsaved: set[str] = set()
        for feed in fetched:
            try:
                self.cache.save_feed(feed, self._position(feed.url))
            except CacheError as e:
                logger.error(f"Failed to cache feed {feed.title}: {e}")
                unsaved.add(feed.url)

        try:
            cached = {feed.url: feed for feed in self.cache.load_all_feeds()}
        except CacheError as e:
            logger.error(f"Failed to reload feeds from cache: {e}")
            cached = {}

        by_url = {feed.url: feed for feed in self.feeds}
        for url in by_url:
            if url in cached:
                by_url[url] = cached[url]
        for feed in fetched:
            if feed.url in unsaved or feed.url not in cached:
                by_url[feed.url] = merge_in_memory(by_url.get(feed.url), feed)
            else:
                by_url[feed.url] = cached[feed.url]

        self.feeds = self._ordered(self._apply_config(feed) for feed in by_url.values())
        self.rebuild_display_feeds()

    # ─────────────────────────────────────────────────────────────
    # Display and read state
    # ─────────────────────────────────────────────────────────────

    def rebuild_display_feeds(self):
        self.display_feeds = build_display_feeds(self.feeds, self.query_configs)

    def mark_read(self, display_index: int, entry_index: int) -> bool:
        """Mark the selected entry read. No-op when it already is."""
        selected = self._select(display_index, entry_index)
        if selected is None:
            return False
        display_feed, entry = selected
        return self.synchronizer.mark_read(self.feeds, self.display_feeds, display_feed, entry)

    def toggle_read(self, display_index: int, entry_index: int) -> bool:
        selected = self._select(display_index, entry_index)
        if selected is None:
            return False
        display_feed, entry = selected
        return self.synchronizer.toggle_read(self.feeds, self.display_feeds, display_feed, entry)

    def mark_all_read(self, display_index: int, read: bool = True) -> int:
        """Mark every entry of a display feed read (or unread)."""
        if not 0 <= display_index < len(self.display_feeds):
            return 0
        return self.synchronizer.set_all_read(
            self.feeds, self.display_feeds, self.display_feeds[display_index], read
        )

    def _select(self, display_index: int, entry_index: int):
        if not 0 <= display_index < len(self.display_feeds):
            return None
        display_feed = self.display_feeds[display_index]
        if not 0 <= entry_index < len(display_feed.entries):
            return None
        return display_feed, display_feed.entries[entry_index]

    # ─────────────────────────────────────────────────────────────
    # Configuration helpers
    # ─────────────────────────────────────────────────────────────

    def _position(self, url: str) -> int:
        for index, feed_config in enumerate(self.feed_configs):
            if feed_config.link == url:
                return index
        return len(self.feed_configs)

    def _ordered(self, feeds) -> list[Feed]:
        return sorted(feeds, key=lambda feed: self._position(feed.url))

    def _apply_config(self, feed: Feed) -> Feed:
        """Apply the configured display name and tags to a cached feed."""
        feed_config = next((c for c in self.feed_configs if c.link == feed.url), None)
        if feed_config is None:
            return feed
        if feed_config.name:
            feed.title = feed_config.name
        feed.tags = set(feed_config.tags) if feed_config.tags else None
        return feed
