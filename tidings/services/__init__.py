"""
Service layer for the reader.

The display projection, read-state synchronization and the consumer loop
state live here; the presentation layer only talks to ReaderService.
"""

from .display import DisplayFeed, QueryFeed, RegularFeed, build_display_feeds
from .read_state import ReadStateSynchronizer
from .reader_service import LoadingState, ReaderService, merge_in_memory

__all__ = [
    "DisplayFeed",
    "QueryFeed",
    "RegularFeed",
    "build_display_feeds",
    "ReadStateSynchronizer",
    "LoadingState",
    "ReaderService",
    "merge_in_memory",
]
