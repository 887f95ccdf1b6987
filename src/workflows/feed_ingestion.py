"""
Server-side ingestion pipeline: pull feed -> normalize -> dedup-insert -> update health.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from core.entities import ContentFilters, ContentKind, FeedDescriptor, FetchLog, Page
from ingestion.rss import FeedParser
from services.content_store import ArticleRepository, VideoRepository
from services.database import Database
from services.feed_store import FeedRepository, FetchLogRepository
from services.health import FeedHealthTracker

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


@dataclass
class IngestResult:
    success: bool
    items_found: int = 0
    new_items: int = 0
    error: Optional[str] = None
    feed_id: Optional[int] = None


class FeedIngestionPipeline:
    """
    Orchestrates one parse+normalize+store cycle per feed and serves
    the read side used by dashboards and admin tools.
    """

    def __init__(
        self,
        database: Database,
        parser: Optional[FeedParser] = None,
        max_items: int = 50,
    ):
        self.db = database
        self.parser = parser or FeedParser()
        self.max_items = max_items
        self.articles = ArticleRepository(database)
        self.videos = VideoRepository(database)
        self.feeds = FeedRepository(database)
        self.fetch_logs = FetchLogRepository(database)
        self.health = FeedHealthTracker(self.feeds)
        self._initialized = False

    async def initialize(self) -> None:
        if not self._initialized:
            await self.db.init_tables()
            self._initialized = True

    async def seed_feeds(self, feeds: Iterable[FeedDescriptor]) -> int:
        """Register configured feeds; already-known URLs are left untouched."""
        await self.initialize()
        created = 0
        for feed in feeds:
            if await self.feeds.create(feed) is not None:
                created += 1
        logger.info(f"Seeded {created} new feeds")
        return created

    async def ingest_feed(self, feed_id: int) -> IngestResult:
        await self.initialize()
        feed = await self.feeds.get(feed_id)
        if feed is None:
            return IngestResult(success=False, error="Feed not found", feed_id=feed_id)

        result = await self.parser.parse_feed(feed, max_items=self.max_items)
        now = datetime.now(timezone.utc)
        new_items = 0
        error = result.error
        success = result.success

        if success:
            repo = self.videos if feed.is_video else self.articles
            try:
                for record in result.items:
                    if await repo.create(record) is not None:
                        new_items += 1
            except Exception as e:
                logger.exception(f"Storing items for {feed.name} failed: {e}")
                success, error = False, str(e)

        await self.health.record(feed, success, result.response_time_ms, now)
        await self.fetch_logs.append(FetchLog(
            feed_id=feed.id,
            feed_url=feed.url,
            fetched_at=now,
            success=success,
            response_time=result.response_time_ms,
            items_found=result.items_found,
            new_items=new_items,
            error_message=error,
            status_code=result.status_code,
        ))

        logger.info(
            f"Feed {feed.name}: {result.items_found} found, {new_items} new",
            extra={"feed": feed.name},
        )
        return IngestResult(
            success=success,
            items_found=result.items_found,
            new_items=new_items,
            error=error,
            feed_id=feed.id,
        )

    async def ingest_due_feeds(self, now: Optional[datetime] = None) -> Dict[int, IngestResult]:
        """Ingest every due feed concurrently; one failing feed never affects another."""
        await self.initialize()
        due = await self.health.due_feeds(now)
        if not due:
            return {}
        logger.info(f"Ingesting {len(due)} due feeds")
        outcomes = await asyncio.gather(
            *(self.ingest_feed(feed.id) for feed in due), return_exceptions=True
        )
        results: Dict[int, IngestResult] = {}
        for feed, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Ingest crashed for {feed.name}: {outcome}")
                outcome = IngestResult(success=False, error=str(outcome), feed_id=feed.id)
            results[feed.id] = outcome
        return results

    async def list_content(
        self,
        kind: ContentKind,
        filters: Optional[ContentFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        await self.initialize()
        repo = self.videos if ContentKind(kind) == ContentKind.VIDEO else self.articles
        return await repo.get_page(filters, page=page, limit=min(limit, MAX_PAGE_SIZE))

    async def list_feed_health(self) -> List[FeedDescriptor]:
        await self.initialize()
        return await self.health.list_health()

    async def prune(self, retention_days: int, now: Optional[datetime] = None) -> Dict[str, int]:
        await self.initialize()
        return {
            "articles": await self.articles.delete_older_than(retention_days, now),
            "videos": await self.videos.delete_older_than(retention_days, now),
        }
