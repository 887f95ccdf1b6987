import argparse
import asyncio
import json
import logging
import os
import time
from dataclasses import asdict
from typing import List, Optional

from aggregation import AggregationService
from core.entities import ContentFilters, ContentKind
from ingestion.rss import FeedParser
from ingestion.source_factory import create_sources_from_config
from services.config import Config, get_enabled_feeds, load_config
from services.database import Database
from services.health import health_summary
from services.logging import setup_logging
from services.scheduler import FeedRefreshLoop
from workflows.feed_ingestion import FeedIngestionPipeline

logger = logging.getLogger(__name__)


def build_pipeline(config: Config) -> FeedIngestionPipeline:
    db_dir = os.path.dirname(config.DATABASE_PATH)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
        logger.info(f"Created directory: {db_dir}")
    parser = FeedParser(timeout=config.FETCH_TIMEOUT_SECONDS, user_agent=config.USER_AGENT)
    return FeedIngestionPipeline(
        Database(config.DATABASE_PATH),
        parser=parser,
        max_items=config.MAX_ITEMS_PER_FEED,
    )


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def cmd_seed(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    created = await pipeline.seed_feeds(f.to_descriptor() for f in get_enabled_feeds(config))
    _print({"created": created, "configured": len(config.feeds)})


async def cmd_ingest(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    if args.feed_id is not None:
        result = await pipeline.ingest_feed(args.feed_id)
        _print(asdict(result))
        return
    results = await pipeline.ingest_due_feeds()
    _print({feed_id: asdict(r) for feed_id, r in results.items()})


async def cmd_health(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    feeds = await pipeline.list_feed_health()
    _print({
        "summary": health_summary(feeds),
        "feeds": [f.model_dump(mode="json") for f in feeds],
    })


async def cmd_prune(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    days = args.days if args.days is not None else config.RETENTION_DAYS
    _print(await pipeline.prune(days))


async def cmd_list(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    filters = ContentFilters(category=args.category, source=args.source, search=args.search)
    page = await pipeline.list_content(ContentKind(args.kind), filters, page=args.page, limit=args.limit)
    _print({
        "total": page.total,
        "page": page.page,
        "total_pages": page.total_pages,
        "items": [asdict(item) for item in page.items],
    })


async def cmd_watch(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    service = AggregationService(
        create_sources_from_config(config, pipeline=pipeline),
        min_spacing=config.POLL_MIN_SPACING_SECONDS,
        stagger=config.POLL_STAGGER_SECONDS,
        failure_policy=config.CACHE_FAILURE_POLICY,
    )

    def on_update(items: List) -> None:
        logger.info(f"{args.category}: {len(items)} items")

    async with service:
        unsubscribe = service.subscribe_category(args.category, on_update)
        await asyncio.sleep(args.seconds)
        unsubscribe()
        _print(service.get_data_source_status())


async def cmd_serve(config: Config, args) -> None:
    pipeline = build_pipeline(config)
    await pipeline.seed_feeds(f.to_descriptor() for f in get_enabled_feeds(config))
    loop = FeedRefreshLoop(pipeline, tick_seconds=config.REFRESH_TICK_SECONDS)
    loop.start()
    try:
        if args.seconds is not None:
            await asyncio.sleep(args.seconds)
        else:
            await asyncio.Event().wait()
    finally:
        await loop.stop()


COMMANDS = {
    "seed": cmd_seed,
    "ingest": cmd_ingest,
    "health": cmd_health,
    "prune": cmd_prune,
    "list": cmd_list,
    "watch": cmd_watch,
    "serve": cmd_serve,
}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feedpulse", description="Feed ingestion and aggregation")
    parser.add_argument("--config", help="Path to config.yml")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Register feeds from config")

    ingest = sub.add_parser("ingest", help="Fetch one feed or every due feed")
    group = ingest.add_mutually_exclusive_group()
    group.add_argument("--feed-id", type=int)
    group.add_argument("--due", action="store_true", help="Ingest all due feeds (default)")

    sub.add_parser("health", help="Show feed health")

    prune = sub.add_parser("prune", help="Delete content past the retention horizon")
    prune.add_argument("--days", type=int)

    listing = sub.add_parser("list", help="List stored content")
    listing.add_argument("kind", choices=[k.value for k in ContentKind])
    listing.add_argument("--category")
    listing.add_argument("--source")
    listing.add_argument("--search")
    listing.add_argument("--page", type=int, default=1)
    listing.add_argument("--limit", type=int, default=20)

    watch = sub.add_parser("watch", help="Poll aggregation sources and log category updates")
    watch.add_argument("category")
    watch.add_argument("--seconds", type=float, default=60.0)

    serve = sub.add_parser("serve", help="Run the feed refresh loop")
    serve.add_argument("--seconds", type=float, help="Stop after N seconds (default: run forever)")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(config.LOG_LEVEL)

    start_time = time.perf_counter()
    asyncio.run(COMMANDS[args.command](config, args))
    logger.info(f"Total time: {time.perf_counter() - start_time:.2f}s")


if __name__ == "__main__":
    main()
