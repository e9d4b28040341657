"""
Feed Parser - Fetch and parse RSS/Atom feeds.

Handles:
- RSS 2.0 and Atom 1.0 formats via feedparser
- HTML entry bodies converted to plain text
- Display name and tag overrides from the feed configuration
- Retries (tenacity) for dropped connections and timeouts
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

import aiohttp
import feedparser
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import FeedConfig
from .exceptions import FeedFetchError

logger = logging.getLogger(__name__)

BLOCK_TAGS = [
    "p", "div", "li", "blockquote", "pre", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
]


@dataclass
class FeedEntry:
    """A single entry from a feed."""
    title: str
    published: str | None = None
    text: str = ""
    links: list[str] = field(default_factory=list)
    media: str | None = None
    feed_title: str | None = None  # Owning feed, set only in query feeds
    feed_url: str | None = None
    read: bool = False

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the entry within its feed."""
        return (self.title, self.published or "")

    def copy(self, **changes) -> "FeedEntry":
        return replace(self, **{"links": list(self.links), **changes})


@dataclass
class Feed:
    """A feed and its entries. Identity is the URL."""
    url: str
    title: str
    entries: list[FeedEntry] = field(default_factory=list)
    tags: set[str] | None = None

    def find_entry(self, title: str, published: str | None) -> FeedEntry | None:
        key = (title, published or "")
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.read)


def html_to_text(html: str) -> str:
    """Convert an HTML fragment to plain text, one block element per line."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.append("\n")

    lines = (" ".join(line.split()) for line in soup.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def _entry_published(entry) -> str | None:
    """Publish (or update) time as an ISO-8601 UTC string."""
    for key in ("published_parsed", "updated_parsed"):
        parsed_time = entry.get(key)
        if parsed_time:
            try:
                return datetime(*parsed_time[:6], tzinfo=timezone.utc).isoformat()
            except (TypeError, ValueError):
                continue
    return None


def _entry_text(entry) -> str:
    if entry.get("content"):
        return html_to_text(entry.content[0].get("value", ""))
    if entry.get("summary"):
        return html_to_text(entry.summary)
    if entry.get("description"):
        return html_to_text(entry.description)
    return ""


def _entry_links(entry) -> list[str]:
    links: list[str] = []
    for link in entry.get("links", []):
        if link.get("rel") == "enclosure":
            continue
        href = link.get("href")
        if href and href not in links:
            links.append(href)
    if not links and entry.get("link"):
        links.append(entry.link)
    return links


def _entry_media(entry) -> str | None:
    for media in entry.get("media_content", []):
        if media.get("url"):
            return media["url"]
    for enclosure in entry.get("enclosures", []):
        url = enclosure.get("href") or enclosure.get("url")
        if url:
            return url
    for thumbnail in entry.get("media_thumbnail", []):
        if thumbnail.get("url"):
            return thumbnail["url"]
    return None


class FeedParser:
    """Downloads feeds and converts them to Feed values."""

    def __init__(self, timeout: int = 30, user_agent: str | None = None):
        self.timeout = timeout
        self.user_agent = user_agent or "tidings (+https://github.com/tidings-reader)"

    async def fetch(self, feed_config: FeedConfig) -> Feed:
        """
        Fetch and parse a configured feed.

        Raises:
            FeedFetchError: On HTTP, network, timeout or parse failure
        """
        try:
            content = await self._download(feed_config.link)
        except asyncio.TimeoutError as e:
            raise FeedFetchError(feed_config.link, f"timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(feed_config.link, str(e) or type(e).__name__) from e

        return self.parse(content, feed_config)

    @retry(
        retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _download(self, link: str) -> bytes:
        """GET the feed body. Connection failures and timeouts are retried; HTTP errors are not."""
        headers = {"User-Agent": self.user_agent}
        async with aiohttp.ClientSession() as session:
            async with session.get(
                link,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                resp.raise_for_status()
                return await resp.read()

    def parse(self, content: bytes | str, feed_config: FeedConfig) -> Feed:
        """Parse feed content using feedparser."""
        parsed = feedparser.parse(content)

        if parsed.bozo and not parsed.entries:
            raise FeedFetchError(
                feed_config.link, f"Failed to parse feed: {parsed.bozo_exception}"
            )

        entries = []
        for entry in parsed.entries:
            entries.append(FeedEntry(
                title=entry.get("title") or "Untitled",
                published=_entry_published(entry),
                text=_entry_text(entry),
                links=_entry_links(entry),
                media=_entry_media(entry),
            ))

        title = feed_config.name or parsed.feed.get("title") or feed_config.link
        logger.debug(f"Parsed {len(entries)} entries from {feed_config.link}")

        return Feed(
            url=feed_config.link,
            title=title,
            entries=entries,
            tags=set(feed_config.tags) if feed_config.tags else None,
        )


def parse_feed_sync(content: bytes | str, feed_config: FeedConfig) -> Feed:
    """
    Synchronous feed parsing (for use when content is already fetched).

    Useful for testing or when you already have the feed content.
    """
    parser = FeedParser()
    return parser.parse(content, feed_config)
