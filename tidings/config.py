"""
Configuration loading.

Settings come from the environment (optionally via a .env file). Feed and
query-feed definitions come from files in the configuration directory:

- urls:           one feed per line, "<link> [tag ...] [~Display_Name]"
- settings.toml:  [[query]] tables defining query feeds
- feeds.opml:     optional OPML export, appended after the urls file
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from . import __version__
from .exceptions import ConfigError
from .opml import parse_opml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "tidings"
DEFAULT_DB_PATH = Path.home() / ".cache" / "tidings" / "feeds.db"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class Config:
    """Runtime settings, built once at startup and passed to each component."""
    config_dir: Path = DEFAULT_CONFIG_DIR
    db_path: Path = DEFAULT_DB_PATH
    log_level: str = "WARNING"
    fetch_timeout: int = 30
    user_agent: str = f"tidings/{__version__}"
    refresh_on_start: bool = False

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Config":
        """
        Build a Config from environment variables.

        A .env file is read from env_file, or else from the working directory
        and its parents. Variables already set in the environment win.
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))

        config_dir = os.getenv("TIDINGS_CONFIG_DIR")
        db_path = os.getenv("TIDINGS_DB_PATH")
        try:
            fetch_timeout = int(os.getenv("TIDINGS_FETCH_TIMEOUT", "30"))
        except ValueError as e:
            raise ConfigError(f"TIDINGS_FETCH_TIMEOUT must be an integer: {e}") from e

        return cls(
            config_dir=Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR,
            db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
            log_level=os.getenv("TIDINGS_LOG_LEVEL", "WARNING").upper(),
            fetch_timeout=fetch_timeout,
            user_agent=os.getenv("TIDINGS_USER_AGENT", f"tidings/{__version__}"),
            refresh_on_start=_parse_bool(os.getenv("TIDINGS_REFRESH_ON_START")),
        )

    @property
    def urls_path(self) -> Path:
        return self.config_dir / "urls"

    @property
    def settings_path(self) -> Path:
        return self.config_dir / "settings.toml"

    @property
    def opml_path(self) -> Path:
        return self.config_dir / "feeds.opml"


@dataclass
class FeedConfig:
    """A configured feed. Identity is the link."""
    link: str
    name: str | None = None
    tags: set[str] | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.link


@dataclass
class QueryFeedConfig:
    """A virtual feed built from a query over the configured feeds."""
    name: str
    query: str = ""


@dataclass
class FeedSettings:
    """Everything loaded from the configuration directory."""
    feeds: list[FeedConfig] = field(default_factory=list)
    queries: list[QueryFeedConfig] = field(default_factory=list)


def parse_urls_file(text: str) -> list[FeedConfig]:
    """
    Parse the contents of a urls file.

    Each non-comment line is "<link> [tag ...] [~Display_Name]". Underscores
    in the display name are shown as spaces.
    """
    feeds: list[FeedConfig] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        words = stripped.split()
        link, rest = words[0], words[1:]

        name = None
        if rest and rest[-1].startswith("~"):
            name = rest.pop()[1:].replace("_", " ") or None

        feeds.append(FeedConfig(link=link, name=name, tags=set(rest) or None))
    return feeds


def parse_settings(text: str) -> list[QueryFeedConfig]:
    """Parse query feed definitions from settings.toml content."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid settings.toml: {e}") from e

    queries: list[QueryFeedConfig] = []
    for index, table in enumerate(data.get("query", [])):
        name = table.get("name")
        if not name:
            raise ConfigError(f"Query feed #{index + 1} is missing a name")
        queries.append(QueryFeedConfig(name=name, query=str(table.get("query", ""))))
    return queries


def load_feed_settings(config: Config) -> FeedSettings:
    """Load feeds and query feeds from the configuration directory."""
    settings = FeedSettings()

    if config.urls_path.exists():
        settings.feeds = parse_urls_file(config.urls_path.read_text(encoding="utf-8"))
    else:
        logger.warning(f"No urls file found at {config.urls_path}")

    if config.opml_path.exists():
        try:
            opml_doc = parse_opml(config.opml_path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise ConfigError(f"Invalid OPML file {config.opml_path}: {e}") from e

        known = {feed.link for feed in settings.feeds}
        for opml_feed in opml_doc.feeds:
            if opml_feed.url in known:
                continue
            known.add(opml_feed.url)
            settings.feeds.append(FeedConfig(
                link=opml_feed.url,
                name=opml_feed.title,
                tags=set(opml_feed.tags) or None,
            ))

    if config.settings_path.exists():
        settings.queries = parse_settings(config.settings_path.read_text(encoding="utf-8"))

    logger.info(
        f"Loaded {len(settings.feeds)} feeds and {len(settings.queries)} query feeds "
        f"from {config.config_dir}"
    )
    return settings
