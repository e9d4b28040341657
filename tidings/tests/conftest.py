"""
Pytest fixtures for reader tests.
"""

import os
import tempfile
from pathlib import Path

import pytest

from tidings.config import Config, FeedConfig, FeedSettings, QueryFeedConfig
from tidings.database import FeedCache
from tidings.exceptions import FeedFetchError
from tidings.feeds import Feed, FeedEntry


def make_entry(title: str, published: str | None = None, text: str = "", **kwargs) -> FeedEntry:
    return FeedEntry(
        title=title,
        published=published,
        text=text or f"Body of {title}",
        links=kwargs.pop("links", [f"https://example.com/{title.lower().replace(' ', '-')}"]),
        **kwargs,
    )


class FakeParser:
    """Stands in for FeedParser; returns canned feeds or raises canned errors."""

    def __init__(self, results: dict):
        self.results = results
        self.fetched: list[str] = []

    async def fetch(self, feed_config: FeedConfig) -> Feed:
        self.fetched.append(feed_config.link)
        result = self.results[feed_config.link]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def cache(temp_db_path):
    """A FeedCache backed by a temporary file."""
    feed_cache = FeedCache(temp_db_path)
    yield feed_cache
    feed_cache.close()


@pytest.fixture
def tech_feed():
    return Feed(
        url="https://tech.example.com/rss",
        title="Tech Blog",
        entries=[
            make_entry("Kernel release", "2024-06-01T09:00:00+00:00"),
            make_entry("Compiler notes", "2024-01-01T09:00:00+00:00"),
            make_entry("Undated musings"),
        ],
        tags={"tech", "blog"},
    )


@pytest.fixture
def news_feed():
    return Feed(
        url="https://news.example.com/atom",
        title="Daily News",
        entries=[
            make_entry("Election results", "2024-03-15T18:00:00+00:00"),
            make_entry("Weather", "2024-07-04T06:00:00+00:00"),
        ],
        tags={"news"},
    )


@pytest.fixture
def settings():
    return FeedSettings(
        feeds=[
            FeedConfig(link="https://tech.example.com/rss", tags={"tech", "blog"}),
            FeedConfig(link="https://news.example.com/atom", tags={"news"}),
            FeedConfig(link="https://broken.example.com/feed", name="Broken"),
        ],
        queries=[
            QueryFeedConfig(name="Tech", query="tags:tech"),
            QueryFeedConfig(name="Everything", query="*"),
        ],
    )


@pytest.fixture
def fake_parser(tech_feed, news_feed):
    return FakeParser({
        tech_feed.url: tech_feed,
        news_feed.url: news_feed,
        "https://broken.example.com/feed": FeedFetchError(
            "https://broken.example.com/feed", "404 Not Found"
        ),
    })


@pytest.fixture
def config(tmp_path):
    return Config(config_dir=tmp_path, db_path=tmp_path / "feeds.db")
