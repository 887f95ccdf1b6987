from datetime import datetime, timedelta, timezone

import httpx
import pytest

from core.entities import ContentFilters, ContentKind
from ingestion.rss import FeedParser
from workflows import FeedIngestionPipeline

from conftest import RSS_XML, YOUTUBE_XML


def make_pipeline(database, routes, client_factory) -> FeedIngestionPipeline:
    return FeedIngestionPipeline(database, parser=FeedParser(client=client_factory(routes)))


@pytest.mark.asyncio
async def test_reingesting_the_same_feed_adds_nothing(database, news_feed, client_factory):
    pipeline = make_pipeline(database, {news_feed.url: lambda r: httpx.Response(200, content=RSS_XML)}, client_factory)
    assert await pipeline.seed_feeds([news_feed]) == 1
    feed = await pipeline.feeds.get_by_url(news_feed.url)

    first = await pipeline.ingest_feed(feed.id)
    assert first.success
    assert (first.items_found, first.new_items) == (3, 2)

    second = await pipeline.ingest_feed(feed.id)
    assert second.success
    assert (second.items_found, second.new_items) == (3, 0)
    assert await pipeline.articles.get_total_count() == 2

    logs = await pipeline.fetch_logs.recent(feed.id)
    assert [log.new_items for log in logs] == [0, 2]
    assert all(log.status_code == 200 for log in logs)

    refreshed = await pipeline.feeds.get(feed.id)
    assert refreshed.health_score == 100
    assert refreshed.last_success_at is not None


@pytest.mark.asyncio
async def test_failed_fetch_updates_health_and_log(database, news_feed, client_factory):
    pipeline = make_pipeline(database, {news_feed.url: lambda r: httpx.Response(503)}, client_factory)
    await pipeline.seed_feeds([news_feed])
    feed = await pipeline.feeds.get_by_url(news_feed.url)

    result = await pipeline.ingest_feed(feed.id)
    assert not result.success
    assert result.error

    refreshed = await pipeline.feeds.get(feed.id)
    assert refreshed.health_score == 80
    assert refreshed.failure_count == 1
    assert refreshed.last_fetched_at is not None
    assert refreshed.last_success_at is None

    [log] = await pipeline.fetch_logs.recent(feed.id)
    assert not log.success
    assert log.status_code == 503
    assert log.error_message == result.error


@pytest.mark.asyncio
async def test_unknown_feed(database, client_factory):
    pipeline = make_pipeline(database, {}, client_factory)
    result = await pipeline.ingest_feed(42)
    assert not result.success
    assert result.error == "Feed not found"


@pytest.mark.asyncio
async def test_video_feed_lands_in_video_store(database, video_feed, client_factory):
    pipeline = make_pipeline(database, {video_feed.url: lambda r: httpx.Response(200, content=YOUTUBE_XML)}, client_factory)
    await pipeline.seed_feeds([video_feed])
    feed = await pipeline.feeds.get_by_url(video_feed.url)

    result = await pipeline.ingest_feed(feed.id)
    assert result.new_items == 1
    assert await pipeline.videos.get_total_count() == 1
    assert await pipeline.articles.get_total_count() == 0

    page = await pipeline.list_content(ContentKind.VIDEO)
    assert page.items[0].video_id == "abc123XYZ_-"


@pytest.mark.asyncio
async def test_ingest_due_feeds_isolates_failures(database, news_feed, video_feed, client_factory):
    routes = {
        news_feed.url: lambda r: httpx.Response(200, content=RSS_XML),
        video_feed.url: lambda r: httpx.Response(500),
    }
    pipeline = make_pipeline(database, routes, client_factory)
    await pipeline.seed_feeds([news_feed, video_feed])

    results = await pipeline.ingest_due_feeds()
    by_url = {(await pipeline.feeds.get(fid)).url: r for fid, r in results.items()}
    assert by_url[news_feed.url].success
    assert by_url[news_feed.url].new_items == 2
    assert not by_url[video_feed.url].success

    # both were just fetched, so nothing is due now
    assert await pipeline.ingest_due_feeds() == {}


@pytest.mark.asyncio
async def test_list_content_and_prune(database, news_feed, client_factory):
    pipeline = make_pipeline(database, {news_feed.url: lambda r: httpx.Response(200, content=RSS_XML)}, client_factory)
    await pipeline.seed_feeds([news_feed])
    feed = await pipeline.feeds.get_by_url(news_feed.url)
    await pipeline.ingest_feed(feed.id)

    page = await pipeline.list_content(ContentKind.ARTICLE, limit=1000)
    assert page.limit == 200
    assert [a.title for a in page.items] == ["Quarterly funding round closes", "OpenAI ships a new LLM"]

    industry = await pipeline.list_content(ContentKind.ARTICLE, ContentFilters(category="Industry News"))
    assert [a.title for a in industry.items] == ["Quarterly funding round closes"]

    horizon = datetime(2024, 1, 2, tzinfo=timezone.utc) + timedelta(days=30)
    assert await pipeline.prune(30, now=horizon) == {"articles": 1, "videos": 0}
    assert await pipeline.articles.get_total_count() == 1


@pytest.mark.asyncio
async def test_seed_feeds_is_idempotent(database, news_feed, client_factory):
    pipeline = make_pipeline(database, {}, client_factory)
    assert await pipeline.seed_feeds([news_feed]) == 1
    assert await pipeline.seed_feeds([news_feed]) == 0
    assert len(await pipeline.list_feed_health()) == 1
