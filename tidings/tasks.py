"""
Background tasks for feed fetching.

Fetch tasks only produce parsed Feed values and report progress through an
asyncio.Queue. They never touch the cache; the reader saves whatever arrives
in a Replace or UpdateFeed message.
"""

import asyncio
import logging

from .config import FeedConfig
from .feeds import Feed, FeedParser
from .messages import FeedError, FeedUpdate, FetchComplete, FetchingFeed, Replace, UpdateFeed

logger = logging.getLogger(__name__)


async def _fetch_one(
    feed_config: FeedConfig,
    fetcher: FeedParser,
    updates: "asyncio.Queue[FeedUpdate]",
) -> Feed | None:
    """Fetch one feed, reporting failure as a FeedError instead of raising."""
    updates.put_nowait(FetchingFeed(feed_config.display_name))
    try:
        return await fetcher.fetch(feed_config)
    except Exception as e:
        logger.warning(f"Error fetching feed {feed_config.link}: {e}")
        updates.put_nowait(FeedError(name=feed_config.display_name, error=str(e)))
        return None


async def refresh_all_feeds(
    feed_configs: list[FeedConfig],
    fetcher: FeedParser,
    updates: "asyncio.Queue[FeedUpdate]",
) -> list[Feed]:
    """
    Fetch every configured feed concurrently.

    Sends FetchingFeed/FeedError per feed as they happen, then Replace with
    the feeds that succeeded, then FetchComplete.
    """
    logger.info(f"Refreshing {len(feed_configs)} feeds")

    results = await asyncio.gather(
        *(_fetch_one(feed_config, fetcher, updates) for feed_config in feed_configs)
    )
    feeds = [feed for feed in results if feed is not None]

    updates.put_nowait(Replace(feeds))
    updates.put_nowait(FetchComplete())

    logger.info(f"Refresh finished: {len(feeds)} fetched, {len(feed_configs) - len(feeds)} failed")
    return feeds


async def refresh_single_feed(
    feed_config: FeedConfig,
    fetcher: FeedParser,
    updates: "asyncio.Queue[FeedUpdate]",
) -> Feed | None:
    """Refresh one feed, sending UpdateFeed on success, then FetchComplete."""
    feed = await _fetch_one(feed_config, fetcher, updates)
    if feed is not None:
        updates.put_nowait(UpdateFeed(url=feed_config.link, feed=feed))
    updates.put_nowait(FetchComplete())
    return feed
