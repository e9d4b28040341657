"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import sqlite3
from datetime import datetime, timezone

from ..feeds import FeedEntry
from .models import DBFeed


def tags_to_json(tags: set[str] | None) -> str | None:
    """Serialize tags as a sorted JSON array, or NULL when the feed has none."""
    if tags is None:
        return None
    return json.dumps(sorted(tags))


def tags_from_json(value: str | None) -> set[str] | None:
    if not value:
        return None
    try:
        tags = json.loads(value)
    except json.JSONDecodeError:
        return None
    if not isinstance(tags, list):
        return None
    return {str(tag) for tag in tags}


def links_from_json(value: str | None) -> list[str]:
    if not value:
        return []
    try:
        links = json.loads(value)
    except json.JSONDecodeError:
        return []
    if not isinstance(links, list):
        return []
    return [str(link) for link in links]


def row_to_feed(row: sqlite3.Row) -> DBFeed:
    """Convert a feeds row to a DBFeed."""
    return DBFeed(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        last_fetched=datetime.fromtimestamp(row["last_fetched"], tz=timezone.utc),
        tags=tags_from_json(row["tags"]),
        position=row["position"] or 0,
    )


def row_to_entry(row: sqlite3.Row) -> FeedEntry:
    """Convert an entries row to a FeedEntry."""
    return FeedEntry(
        title=row["title"],
        published=row["published"],
        text=row["text"],
        links=links_from_json(row["links"]),
        media=row["media"] or None,
        read=bool(row["read"]),
    )
