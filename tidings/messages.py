"""
Messages sent from fetch tasks to the reader.

FeedUpdate is a closed union; consumers handle every member.
"""

from dataclasses import dataclass, field

from .feeds import Feed


@dataclass
class Replace:
    """Every feed fetched in this refresh. Sent once, after all tasks finish."""
    feeds: list[Feed] = field(default_factory=list)


@dataclass
class UpdateFeed:
    """A single refreshed feed, identified by its URL."""
    url: str
    feed: Feed


@dataclass
class FetchingFeed:
    """A feed fetch is starting."""
    name: str


@dataclass
class FeedError:
    """A feed failed to fetch or parse and was left out of the batch."""
    name: str
    error: str


@dataclass
class FetchComplete:
    """Every fetch in the refresh has finished. Always follows Replace."""


FeedUpdate = Replace | UpdateFeed | FetchingFeed | FeedError | FetchComplete
