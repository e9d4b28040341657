"""
Tests for the concurrent fetch tasks.
"""

import asyncio

import pytest

from conftest import FakeParser
from tidings.config import FeedConfig
from tidings.messages import FeedError, FetchComplete, FetchingFeed, Replace, UpdateFeed
from tidings.tasks import refresh_all_feeds, refresh_single_feed


def drain(queue: asyncio.Queue) -> list:
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages


class TestRefreshAllFeeds:
    """Tests for refresh_all_feeds."""

    @pytest.mark.asyncio
    async def test_partial_failure_batch(self, settings, fake_parser):
        """One failing feed is reported and left out; the others still arrive."""
        queue: asyncio.Queue = asyncio.Queue()

        await refresh_all_feeds(settings.feeds, fake_parser, queue)
        messages = drain(queue)

        errors = [m for m in messages if isinstance(m, FeedError)]
        assert len(errors) == 1
        assert errors[0].name == "Broken"
        assert "404" in errors[0].error

        replace = [m for m in messages if isinstance(m, Replace)]
        assert len(replace) == 1
        assert [f.url for f in replace[0].feeds] == [
            "https://tech.example.com/rss",
            "https://news.example.com/atom",
        ]

    @pytest.mark.asyncio
    async def test_replace_then_complete_come_last(self, settings, fake_parser):
        queue: asyncio.Queue = asyncio.Queue()

        await refresh_all_feeds(settings.feeds, fake_parser, queue)
        messages = drain(queue)

        assert isinstance(messages[-2], Replace)
        assert isinstance(messages[-1], FetchComplete)
        error_index = next(i for i, m in enumerate(messages) if isinstance(m, FeedError))
        assert error_index < len(messages) - 2

    @pytest.mark.asyncio
    async def test_progress_for_every_feed(self, settings, fake_parser):
        queue: asyncio.Queue = asyncio.Queue()

        await refresh_all_feeds(settings.feeds, fake_parser, queue)

        names = [m.name for m in drain(queue) if isinstance(m, FetchingFeed)]
        assert sorted(names) == sorted([
            "https://tech.example.com/rss",
            "https://news.example.com/atom",
            "Broken",
        ])

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, tech_feed, news_feed):
        """Every fetch is started before any of them finishes."""
        started = []
        release = asyncio.Event()

        class BlockingParser:
            async def fetch(self, feed_config):
                started.append(feed_config.link)
                await release.wait()
                return tech_feed if feed_config.link == tech_feed.url else news_feed

        configs = [FeedConfig(link=tech_feed.url), FeedConfig(link=news_feed.url)]
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(refresh_all_feeds(configs, BlockingParser(), queue))

        while len(started) < 2:
            await asyncio.sleep(0)
        assert not task.done()
        assert queue.qsize() == 2

        release.set()
        feeds = await task
        assert len(feeds) == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self, tech_feed):
        parser = FakeParser({tech_feed.url: RuntimeError("boom")})
        queue: asyncio.Queue = asyncio.Queue()

        feeds = await refresh_all_feeds([FeedConfig(link=tech_feed.url)], parser, queue)

        assert feeds == []
        messages = drain(queue)
        assert [type(m) for m in messages] == [FetchingFeed, FeedError, Replace, FetchComplete]
        assert messages[2].feeds == []

    @pytest.mark.asyncio
    async def test_no_feeds(self):
        queue: asyncio.Queue = asyncio.Queue()

        await refresh_all_feeds([], FakeParser({}), queue)

        assert [type(m) for m in drain(queue)] == [Replace, FetchComplete]


class TestRefreshSingleFeed:
    """Tests for refresh_single_feed."""

    @pytest.mark.asyncio
    async def test_sends_update_feed(self, fake_parser, tech_feed):
        queue: asyncio.Queue = asyncio.Queue()

        await refresh_single_feed(FeedConfig(link=tech_feed.url), fake_parser, queue)

        messages = drain(queue)
        assert [type(m) for m in messages] == [FetchingFeed, UpdateFeed, FetchComplete]
        assert messages[1].url == tech_feed.url
        assert messages[1].feed is tech_feed

    @pytest.mark.asyncio
    async def test_failure_sends_error(self, fake_parser):
        queue: asyncio.Queue = asyncio.Queue()
        feed_config = FeedConfig(link="https://broken.example.com/feed", name="Broken")

        feed = await refresh_single_feed(feed_config, fake_parser, queue)

        assert feed is None
        assert [type(m) for m in drain(queue)] == [FetchingFeed, FeedError, FetchComplete]
