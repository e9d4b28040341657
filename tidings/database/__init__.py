"""
Database module - SQLite persistence for feeds, entries and read state.

Uses repository pattern behind the FeedCache facade.
"""

from .connection import DatabaseConnection
from .models import DBFeed
from .feed_repository import FeedRepository
from .entry_repository import EntryRepository
from .cache import FeedCache

__all__ = [
    "FeedCache",
    "DatabaseConnection",
    "DBFeed",
    "FeedRepository",
    "EntryRepository",
]
