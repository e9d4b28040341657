"""
Query feeds - virtual feeds aggregated from the configured feeds.

A query is either "*" (or empty) to match every feed, or "tags:a,b,c" to
match feeds carrying at least one of the listed tags. Any other query matches
nothing.
"""

from dataclasses import dataclass

from .feeds import Feed, FeedEntry

MATCH_ALL = "*"
TAGS_PREFIX = "tags:"


@dataclass(frozen=True)
class QueryFilter:
    """Parsed query. tags is None when every feed matches."""
    tags: frozenset[str] | None = None

    @property
    def matches_all(self) -> bool:
        return self.tags is None


def parse_query(query: str) -> QueryFilter:
    query = query.strip()

    if not query or query == MATCH_ALL:
        return QueryFilter()

    if query.startswith(TAGS_PREFIX):
        tags = (tag.strip() for tag in query[len(TAGS_PREFIX):].split(","))
        return QueryFilter(tags=frozenset(tag for tag in tags if tag))

    return QueryFilter(tags=frozenset())


def feed_matches(feed: Feed, query_filter: QueryFilter) -> bool:
    if query_filter.matches_all:
        return True
    if not feed.tags:
        return False
    return not query_filter.tags.isdisjoint(feed.tags)


def _newest_first(entries: list[FeedEntry]) -> list[FeedEntry]:
    # Stable sorts: dated entries newest first, then undated in input order
    dated = sorted(
        (entry for entry in entries if entry.published),
        key=lambda entry: entry.published,
        reverse=True,
    )
    undated = [entry for entry in entries if not entry.published]
    return dated + undated


def apply_query(feeds: list[Feed], query: str) -> list[FeedEntry]:
    """
    Collect copies of the entries of every feed matching the query.

    Each copy carries its owning feed's title in feed_title and URL in feed_url.
    """
    query_filter = parse_query(query)

    entries = [
        entry.copy(feed_title=feed.title, feed_url=feed.url)
        for feed in feeds
        if feed_matches(feed, query_filter)
        for entry in feed.entries
    ]
    return _newest_first(entries)
