"""
Tidings Feed Reader Core

Aggregates remote RSS/Atom feeds into a persistent SQLite cache.
Provides concurrent refresh, tag-based query feeds, and read-state tracking.
"""

__version__ = "0.3.0"
