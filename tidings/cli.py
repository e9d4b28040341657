"""
Command-line front end.

A line-oriented stand-in for the interactive reader: refreshes feeds through
ReaderService, lists display feeds, and edits read state in the cache.
"""

import argparse
import asyncio
import logging
import sys

from .config import Config, load_feed_settings
from .database import FeedCache
from .exceptions import CacheError, ConfigError
from .opml import OPMLFeed, generate_opml
from .services import QueryFeed, ReaderService

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


def _print_summary(service: ReaderService, out=None):
    out = out or sys.stdout
    for display_feed in service.display_feeds:
        marker = "?" if isinstance(display_feed, QueryFeed) else " "
        print(
            f"{marker} {display_feed.title}  "
            f"({display_feed.unread_count}/{len(display_feed.entries)} unread)",
            file=out,
        )


async def run_refresh(service: ReaderService, refresh_all: bool = False, out=None) -> int:
    """Run a refresh to completion, polling the message queue like a UI tick."""
    out = out or sys.stdout
    if refresh_all:
        service.load_cached()
        started = service.refresh_feeds()
    else:
        started = service.start()

    last_feed = None
    while service.loading.is_loading:
        service.drain_updates()
        if service.current_feed and service.current_feed != last_feed:
            last_feed = service.current_feed
            print(f"{service.loading.spinner_frame()} fetching {last_feed}", file=out)
        await asyncio.sleep(POLL_INTERVAL)
    service.drain_updates()

    if not started:
        print("All feeds cached; nothing to fetch (use --all to refresh)", file=out)

    for feed_error in service.feed_errors:
        print(f"! {feed_error.name}: {feed_error.error}", file=out)

    _print_summary(service, out)
    return 1 if service.feed_errors else 0


def _cmd_refresh(args, service: ReaderService) -> int:
    return asyncio.run(run_refresh(service, refresh_all=args.all))


def _cmd_list(args, service: ReaderService) -> int:
    service.load_cached()
    _print_summary(service)
    return 0


def _cmd_show(args, service: ReaderService) -> int:
    service.load_cached()
    for display_feed in service.display_feeds:
        if display_feed.title != args.name:
            continue
        for entry in display_feed.entries:
            marker = " " if entry.read else "*"
            source = f" [{entry.feed_title}]" if entry.feed_title else ""
            print(f"{marker} {entry.published or '':25} {entry.title}{source}")
        return 0
    print(f"No feed named {args.name!r}", file=sys.stderr)
    return 1


def _cmd_mark_read(args, service: ReaderService) -> int:
    if args.unread:
        found = service.cache.mark_entry_unread(args.url, args.title, args.published)
    else:
        found = service.cache.mark_entry_read(args.url, args.title, args.published)
    if not found:
        print(f"No cached entry {args.title!r} in {args.url}", file=sys.stderr)
        return 1
    return 0


def _cmd_export_opml(args, service: ReaderService) -> int:
    opml_feeds = [
        OPMLFeed(url=c.link, title=c.name, tags=sorted(c.tags or []))
        for c in service.feed_configs
    ]
    print(generate_opml(opml_feeds))
    return 0


def _cmd_clear(args, service: ReaderService) -> int:
    service.cache.clear_all()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tidings", description="Cached feed reader")
    sub = parser.add_subparsers(dest="command", required=True)

    refresh = sub.add_parser("refresh", help="Fetch feeds into the cache")
    refresh.add_argument("--all", action="store_true", help="Refetch every feed, not only uncached ones")
    refresh.set_defaults(handler=_cmd_refresh)

    sub.add_parser("list", help="List feeds with unread counts").set_defaults(handler=_cmd_list)

    show = sub.add_parser("show", help="List entries of one feed or query feed")
    show.add_argument("name")
    show.set_defaults(handler=_cmd_show)

    mark = sub.add_parser("mark-read", help="Mark a cached entry read")
    mark.add_argument("url")
    mark.add_argument("title")
    mark.add_argument("--published", default=None)
    mark.add_argument("--unread", action="store_true", help="Mark unread instead")
    mark.set_defaults(handler=_cmd_mark_read)

    sub.add_parser("export-opml", help="Print configured feeds as OPML").set_defaults(
        handler=_cmd_export_opml
    )
    sub.add_parser("clear", help="Delete every cached feed").set_defaults(handler=_cmd_clear)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = Config.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_feed_settings(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        cache = FeedCache(config.db_path)
    except CacheError as e:
        logger.error(str(e))
        return 2

    service = ReaderService(config, cache, settings)
    try:
        return args.handler(args, service)
    except CacheError as e:
        logger.error(str(e))
        return 1
    finally:
        cache.close()
