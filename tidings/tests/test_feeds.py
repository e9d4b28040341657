"""
Tests for feed parsing and fetching.
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer
from tenacity import wait_none

from tidings.config import FeedConfig
from tidings.exceptions import FeedFetchError
from tidings.feeds import FeedParser, html_to_text, parse_feed_sync

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Channel</title>
    <link>https://example.com</link>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;&lt;p&gt;Second paragraph&lt;/p&gt;</description>
      <pubDate>Sat, 01 Jun 2024 12:00:00 GMT</pubDate>
      <enclosure url="https://example.com/episode.mp3" type="audio/mpeg" length="1024"/>
    </item>
    <item>
      <title>No date</title>
      <link>https://example.com/no-date</link>
    </item>
  </channel>
</rss>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <id>urn:example:feed</id>
  <updated>2024-03-15T18:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <id>urn:example:1</id>
    <link rel="alternate" href="https://example.com/atom-entry"/>
    <updated>2024-03-15T18:00:00Z</updated>
    <content type="html">&lt;div&gt;Line one&lt;br/&gt;Line two&lt;/div&gt;</content>
  </entry>
</feed>
"""


class TestHtmlToText:
    """Tests for html_to_text."""

    def test_block_elements_become_lines(self):
        html = "<h1>Title</h1><p>First  paragraph</p><ul><li>one</li><li>two</li></ul>"
        assert html_to_text(html) == "Title\nFirst paragraph\none\ntwo"

    def test_br_breaks_lines(self):
        assert html_to_text("one<br>two<br/>three") == "one\ntwo\nthree"

    def test_inline_markup_dropped(self):
        assert html_to_text('Read <a href="/x">this</a> <em>now</em>') == "Read this now"

    def test_entities_decoded(self):
        assert html_to_text("Fish &amp; chips") == "Fish & chips"

    def test_empty(self):
        assert html_to_text("") == ""


class TestParseFeed:
    """Tests for parsing fetched feed content."""

    def test_rss_entries(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))

        assert feed.url == "https://example.com/rss"
        assert feed.title == "Example Channel"
        assert [e.title for e in feed.entries] == ["First post", "No date"]

        first = feed.entries[0]
        assert first.published == "2024-06-01T12:00:00+00:00"
        assert first.text == "Hello world\nSecond paragraph"
        assert first.links == ["https://example.com/first"]
        assert first.media == "https://example.com/episode.mp3"
        assert first.read is False

    def test_missing_fields(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))
        undated = feed.entries[1]

        assert undated.published is None
        assert undated.text == ""
        assert undated.media is None
        assert undated.links == ["https://example.com/no-date"]

    def test_configured_name_and_tags(self):
        feed_config = FeedConfig(link="https://example.com/rss", name="My Feed", tags={"misc"})

        feed = parse_feed_sync(RSS, feed_config)

        assert feed.title == "My Feed"
        assert feed.tags == {"misc"}

    def test_untagged_config(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))
        assert feed.tags is None

    def test_atom_updated_date_and_content(self):
        feed = parse_feed_sync(ATOM, FeedConfig(link="https://example.com/atom"))

        assert feed.title == "Atom Example"
        entry = feed.entries[0]
        assert entry.published == "2024-03-15T18:00:00+00:00"
        assert entry.text == "Line one\nLine two"
        assert entry.links == ["https://example.com/atom-entry"]

    def test_unparseable_content(self):
        with pytest.raises(FeedFetchError, match="example.com/junk"):
            parse_feed_sync(b"this is not a feed", FeedConfig(link="https://example.com/junk"))


class TestFeedModel:
    """Tests for Feed and FeedEntry helpers."""

    def test_find_entry_treats_empty_date_as_missing(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))

        assert feed.find_entry("No date", None) is feed.entries[1]
        assert feed.find_entry("No date", "") is feed.entries[1]
        assert feed.find_entry("First post", None) is None

    def test_copy_does_not_share_links(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))
        original = feed.entries[0]

        copied = original.copy(feed_title="Example Channel")
        copied.links.append("https://elsewhere.example.com")

        assert original.links == ["https://example.com/first"]
        assert original.feed_title is None

    def test_unread_count(self):
        feed = parse_feed_sync(RSS, FeedConfig(link="https://example.com/rss"))
        feed.entries[0].read = True

        assert feed.unread_count == 1


class TestFetch:
    """Tests for FeedParser.fetch against a local HTTP server."""

    @pytest.fixture
    def hits(self):
        return []

    @pytest.fixture
    def no_backoff(self, monkeypatch):
        monkeypatch.setattr(FeedParser._download.retry, "wait", wait_none())

    @pytest_asyncio.fixture
    async def server(self, hits):
        async def rss(request):
            return web.Response(body=RSS, content_type="application/rss+xml")

        async def missing(request):
            hits.append(request.path)
            return web.Response(status=404, text="Not Found")

        async def flaky(request):
            hits.append(request.path)
            if len(hits) < 3:
                request.transport.close()
            return web.Response(body=RSS, content_type="application/rss+xml")

        async def slow(request):
            hits.append(request.path)
            await asyncio.sleep(1)
            return web.Response(body=RSS, content_type="application/rss+xml")

        app = web.Application()
        app.router.add_get("/rss", rss)
        app.router.add_get("/missing", missing)
        app.router.add_get("/flaky", flaky)
        app.router.add_get("/slow", slow)

        test_server = LocalServer(app)
        await test_server.start_server()
        yield test_server
        await test_server.close()

    @pytest.mark.asyncio
    async def test_fetch_success(self, server):
        link = str(server.make_url("/rss"))

        feed = await FeedParser(timeout=5).fetch(FeedConfig(link=link, name="Local"))

        assert feed.url == link
        assert feed.title == "Local"
        assert len(feed.entries) == 2

    @pytest.mark.asyncio
    async def test_http_error_raises_fetch_error(self, server):
        link = str(server.make_url("/missing"))

        with pytest.raises(FeedFetchError) as exc_info:
            await FeedParser(timeout=5).fetch(FeedConfig(link=link))

        assert exc_info.value.link == link
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_http_error_not_retried(self, server, hits, no_backoff):
        with pytest.raises(FeedFetchError):
            await FeedParser(timeout=5).fetch(FeedConfig(link=str(server.make_url("/missing"))))

        assert hits == ["/missing"]

    @pytest.mark.asyncio
    async def test_dropped_connection_retried(self, server, hits, no_backoff):
        link = str(server.make_url("/flaky"))

        feed = await FeedParser(timeout=5).fetch(FeedConfig(link=link))

        assert hits == ["/flaky", "/flaky", "/flaky"]
        assert len(feed.entries) == 2

    @pytest.mark.asyncio
    async def test_persistent_timeout_gives_up_after_three_attempts(self, server, hits, no_backoff):
        link = str(server.make_url("/slow"))

        with pytest.raises(FeedFetchError, match="timed out"):
            await FeedParser(timeout=0.2).fetch(FeedConfig(link=link))

        assert hits == ["/slow", "/slow", "/slow"]
