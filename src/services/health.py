"""
FeedHealthTracker - per-feed success/failure bookkeeping and refresh scheduling.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from core.entities import FeedDescriptor
from services.feed_store import FeedRepository

logger = logging.getLogger(__name__)

SUCCESS_BONUS = 10
FAILURE_PENALTY = 20
HEALTHY_THRESHOLD = 70
UNHEALTHY_THRESHOLD = 30


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def record_success(feed: FeedDescriptor, response_time: float, now: datetime) -> FeedDescriptor:
    return feed.model_copy(update={
        "last_fetched_at": now,
        "last_success_at": now,
        "failure_count": 0,
        "health_score": _clamp(feed.health_score + SUCCESS_BONUS),
        # last sample wins
        "avg_response_time": float(response_time),
    })


def record_failure(feed: FeedDescriptor, response_time: float, now: datetime) -> FeedDescriptor:
    return feed.model_copy(update={
        "last_fetched_at": now,
        "failure_count": feed.failure_count + 1,
        "health_score": _clamp(feed.health_score - FAILURE_PENALTY),
        "avg_response_time": float(response_time),
    })


def is_due_for_refresh(feed: FeedDescriptor, now: Optional[datetime] = None) -> bool:
    """
    True when an active feed has never been fetched or its interval has elapsed.
    """
    if not feed.is_active:
        return False
    if feed.last_fetched_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now >= feed.last_fetched_at + timedelta(minutes=feed.fetch_interval)


def due_feeds(feeds: Iterable[FeedDescriptor], now: Optional[datetime] = None) -> List[FeedDescriptor]:
    now = now or datetime.now(timezone.utc)
    return [feed for feed in feeds if is_due_for_refresh(feed, now)]


def health_summary(feeds: Iterable[FeedDescriptor]) -> Dict[str, Any]:
    """
    Aggregate view used by the health dashboard.
    """
    feeds = list(feeds)
    total = len(feeds)
    healthy = sum(1 for f in feeds if f.health_score > HEALTHY_THRESHOLD)
    unhealthy = sum(1 for f in feeds if f.health_score < UNHEALTHY_THRESHOLD)
    score = round(healthy / total * 100) if total else 0

    if score >= 80:
        status = "healthy"
    elif score >= 50:
        status = "warning"
    else:
        status = "critical"

    return {
        "status": status,
        "score": score,
        "total": total,
        "active": sum(1 for f in feeds if f.is_active),
        "healthy": healthy,
        "unhealthy": unhealthy,
    }


class FeedHealthTracker:
    """
    Applies fetch outcomes to stored feeds.
    Each feed only ever writes its own row.
    """

    def __init__(self, feeds: FeedRepository):
        self.feeds = feeds

    async def record(
        self,
        feed: FeedDescriptor,
        success: bool,
        response_time: float,
        now: Optional[datetime] = None,
    ) -> FeedDescriptor:
        now = now or datetime.now(timezone.utc)
        current = await self.feeds.get(feed.id) or feed
        if success:
            updated = record_success(current, response_time, now)
        else:
            updated = record_failure(current, response_time, now)
            logger.warning(
                f"Feed {feed.name} failed ({updated.failure_count} in a row), "
                f"health {updated.health_score}",
                extra={"feed": feed.name},
            )
        await self.feeds.save(updated)
        return updated

    async def due_feeds(self, now: Optional[datetime] = None) -> List[FeedDescriptor]:
        return due_feeds(await self.feeds.list_active(), now)

    async def list_health(self) -> List[FeedDescriptor]:
        return await self.feeds.list_all()

    async def summary(self) -> Dict[str, Any]:
        return health_summary(await self.feeds.list_all())
