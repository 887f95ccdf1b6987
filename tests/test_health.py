from datetime import datetime, timedelta, timezone

import pytest

from core.entities import FeedDescriptor, FetchLog
from services.feed_store import FeedRepository, FetchLogRepository
from services.health import (
    FeedHealthTracker,
    due_feeds,
    health_summary,
    is_due_for_refresh,
    record_failure,
    record_success,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_score_stays_in_bounds(news_feed):
    feed = news_feed
    for _ in range(10):
        feed = record_failure(feed, 120.0, NOW)
    assert feed.health_score == 0
    assert feed.failure_count == 10
    assert feed.last_fetched_at == NOW
    assert feed.last_success_at is None

    for _ in range(15):
        feed = record_success(feed, 80.0, NOW)
    assert feed.health_score == 100
    assert feed.failure_count == 0
    assert feed.avg_response_time == 80.0
    assert feed.last_success_at == NOW


def test_single_outcomes(news_feed):
    degraded = record_failure(news_feed.model_copy(update={"health_score": 50}), 10.0, NOW)
    assert degraded.health_score == 30
    recovered = record_success(degraded, 10.0, NOW)
    assert recovered.health_score == 40


def test_due_for_refresh(news_feed):
    assert is_due_for_refresh(news_feed, NOW)

    fetched = news_feed.model_copy(update={"last_fetched_at": NOW})
    assert not is_due_for_refresh(fetched, NOW + timedelta(minutes=29))
    assert is_due_for_refresh(fetched, NOW + timedelta(minutes=30))

    inactive = news_feed.model_copy(update={"is_active": False})
    assert not is_due_for_refresh(inactive, NOW)
    assert due_feeds([fetched, inactive, news_feed], NOW) == [news_feed]


def test_health_summary():
    feeds = [
        FeedDescriptor(name="a", url="https://a", health_score=100),
        FeedDescriptor(name="b", url="https://b", health_score=90),
        FeedDescriptor(name="c", url="https://c", health_score=50, is_active=False),
        FeedDescriptor(name="d", url="https://d", health_score=10),
    ]
    summary = health_summary(feeds)
    assert summary == {
        "status": "warning",
        "score": 50,
        "total": 4,
        "active": 3,
        "healthy": 2,
        "unhealthy": 1,
    }
    assert health_summary([])["status"] == "critical"


@pytest.mark.asyncio
async def test_tracker_persists_outcomes(database, news_feed):
    await database.init_tables()
    feeds = FeedRepository(database)
    stored = await feeds.create(news_feed)
    tracker = FeedHealthTracker(feeds)

    await tracker.record(stored, success=False, response_time=250.0, now=NOW)
    await tracker.record(stored, success=False, response_time=300.0, now=NOW)

    loaded = await feeds.get(stored.id)
    assert loaded.health_score == 60
    assert loaded.failure_count == 2
    assert loaded.avg_response_time == 300.0
    assert loaded.last_fetched_at == NOW

    assert await tracker.due_feeds(NOW + timedelta(minutes=5)) == []
    assert [f.id for f in await tracker.due_feeds(NOW + timedelta(minutes=30))] == [stored.id]
    assert (await tracker.summary())["total"] == 1


@pytest.mark.asyncio
async def test_feed_repository(database, news_feed, video_feed):
    await database.init_tables()
    feeds = FeedRepository(database)
    news = await feeds.create(news_feed)
    assert await feeds.create(news_feed) is None
    video = await feeds.create(video_feed)

    assert (await feeds.get_by_url(video_feed.url)).id == video.id
    updated = await feeds.update(news.id, health_score=20, is_active=False)
    assert updated.health_score == 20
    assert [f.id for f in await feeds.list_active()] == [video.id]
    assert [f.id for f in await feeds.list_all()] == [video.id, news.id]

    assert await feeds.delete(news.id)
    assert await feeds.get(news.id) is None
    assert await feeds.update(news.id, is_active=True) is None
    assert await feeds.get_total_count() == 1


@pytest.mark.asyncio
async def test_fetch_log_history_and_stats(database):
    await database.init_tables()
    logs = FetchLogRepository(database)
    outcomes = [(True, 100.0, 5, 5), (False, 300.0, 0, 0), (True, 200.0, 5, 1)]
    for minute, (success, elapsed, found, new) in enumerate(outcomes):
        await logs.append(FetchLog(
            feed_id=1,
            feed_url="https://example.com/a.xml",
            fetched_at=NOW + timedelta(minutes=minute),
            success=success,
            response_time=elapsed,
            items_found=found,
            new_items=new,
            error_message=None if success else "timeout",
        ))

    recent = await logs.recent(1, limit=2)
    assert [log.response_time for log in recent] == [200.0, 300.0]
    assert recent[1].error_message == "timeout"

    stats = await logs.stats(1)
    assert stats["attempts"] == 3
    assert stats["successes"] == 2
    assert stats["failures"] == 1
    assert stats["success_rate"] == pytest.approx(2 / 3)
    assert stats["avg_response_time"] == pytest.approx(200.0)
    assert stats["items_found"] == 10
    assert stats["new_items"] == 6

    assert (await logs.stats(1, since=NOW + timedelta(minutes=1)))["attempts"] == 2
    assert (await logs.stats(2))["success_rate"] == 0.0
