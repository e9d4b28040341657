"""
Display feeds - what the presentation layer lists.

A display feed is either a RegularFeed wrapping a copy of one cached feed, or
a QueryFeed holding entries copied out of every feed its query matches. Both
are rebuilt from the feed set whenever it changes.
"""

from dataclasses import dataclass, field

from ..config import QueryFeedConfig
from ..feeds import Feed, FeedEntry
from ..query import apply_query


@dataclass
class RegularFeed:
    feed: Feed

    @property
    def title(self) -> str:
        return self.feed.title

    @property
    def entries(self) -> list[FeedEntry]:
        return self.feed.entries

    @property
    def unread_count(self) -> int:
        return self.feed.unread_count


@dataclass
class QueryFeed:
    name: str
    query: str = ""
    entries: list[FeedEntry] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.name

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.read)


DisplayFeed = RegularFeed | QueryFeed


def copy_feed(feed: Feed) -> Feed:
    return Feed(
        url=feed.url,
        title=feed.title,
        entries=[entry.copy() for entry in feed.entries],
        tags=set(feed.tags) if feed.tags is not None else None,
    )


def build_display_feeds(
    feeds: list[Feed],
    query_configs: list[QueryFeedConfig]
) -> list[DisplayFeed]:
    """Query feeds first, in configured order, then every regular feed."""
    display_feeds: list[DisplayFeed] = []

    for query_config in query_configs:
        display_feeds.append(QueryFeed(
            name=query_config.name,
            query=query_config.query,
            entries=apply_query(feeds, query_config.query),
        ))

    for feed in feeds:
        display_feeds.append(RegularFeed(copy_feed(feed)))

    return display_feeds
