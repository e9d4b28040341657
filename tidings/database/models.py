"""
Database models - dataclasses for cache rows.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class DBFeed:
    id: int
    url: str
    title: str
    last_fetched: datetime
    tags: set[str] | None
    position: int = 0
