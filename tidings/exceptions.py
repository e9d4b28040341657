"""
Exception hierarchy for the feed reader core.

Fetch and cache failures are raised here and caught at the service boundary,
where they are logged and turned into user-visible feed errors.
"""


class TidingsError(Exception):
    """Base class for all reader errors."""


class ConfigError(TidingsError):
    """Raised when a configuration file cannot be parsed."""


class FeedFetchError(TidingsError):
    """Raised when a feed cannot be downloaded or parsed."""

    def __init__(self, link: str, reason: str):
        self.link = link
        self.reason = reason
        super().__init__(f"{link}: {reason}")


class CacheError(TidingsError):
    """Raised when the SQLite cache fails to read or write."""
