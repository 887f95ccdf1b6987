import httpx
import pytest

from core.entities import CanonicalVideo
from ingestion.rss import FeedParser, USER_AGENT

from conftest import EMPTY_RSS_XML, RSS_XML, YOUTUBE_XML


@pytest.mark.asyncio
async def test_parse_news_feed(news_feed, client_factory):
    seen_headers = {}

    def respond(request: httpx.Request) -> httpx.Response:
        seen_headers.update(request.headers)
        return httpx.Response(200, content=RSS_XML)

    parser = FeedParser(client=client_factory({news_feed.url: respond}))
    result = await parser.parse_feed(news_feed)

    assert result.success
    assert result.error is None
    assert result.status_code == 200
    assert result.items_found == 3
    assert result.new_items == 2
    assert [a.title for a in result.articles] == ["OpenAI ships a new LLM", "Quarterly funding round closes"]
    assert result.videos == []
    assert result.response_time_ms >= 0
    assert seen_headers["user-agent"] == USER_AGENT
    assert "application/rss+xml" in seen_headers["accept"]

    first = result.articles[0]
    assert first.category == "Generative AI"
    assert first.is_breaking
    assert first.language == "en"
    assert first.tags == ["ai", "breaking"]


@pytest.mark.asyncio
async def test_max_items_bound_keeps_feed_order(news_feed, client_factory):
    parser = FeedParser(client=client_factory({news_feed.url: lambda r: httpx.Response(200, content=RSS_XML)}))
    result = await parser.parse_feed(news_feed, max_items=1)
    assert result.items_found == 1
    assert [a.source_url for a in result.articles] == ["https://example.com/a/1"]


@pytest.mark.asyncio
async def test_parse_video_feed(video_feed, client_factory):
    parser = FeedParser(client=client_factory({video_feed.url: lambda r: httpx.Response(200, content=YOUTUBE_XML)}))
    result = await parser.parse_feed(video_feed)

    assert result.success
    assert result.items_found == 2
    assert result.new_items == 1
    assert result.articles == []
    video = result.videos[0]
    assert isinstance(video, CanonicalVideo)
    assert video.video_id == "abc123XYZ_-"
    assert video.channel_id == "UCchan"
    assert video.category == "Tutorial"


@pytest.mark.asyncio
async def test_empty_feed_is_not_an_error(news_feed, client_factory):
    parser = FeedParser(client=client_factory({news_feed.url: lambda r: httpx.Response(200, content=EMPTY_RSS_XML)}))
    result = await parser.parse_feed(news_feed)
    assert result.success
    assert result.items == []
    assert result.items_found == 0


@pytest.mark.asyncio
async def test_http_error_is_returned_not_raised(news_feed, client_factory):
    parser = FeedParser(client=client_factory({news_feed.url: lambda r: httpx.Response(500, text="boom")}))
    result = await parser.parse_feed(news_feed)
    assert not result.success
    assert result.status_code == 500
    assert result.error
    assert result.items_found == 0


@pytest.mark.asyncio
async def test_transport_error_is_returned_not_raised(news_feed, client_factory):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    parser = FeedParser(client=client_factory({news_feed.url: refuse}))
    result = await parser.parse_feed(news_feed)
    assert not result.success
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_malformed_document_is_a_failure(news_feed, client_factory):
    parser = FeedParser(client=client_factory({news_feed.url: lambda r: httpx.Response(200, content=b"this is not a feed")}))
    result = await parser.parse_feed(news_feed)
    assert not result.success
    assert result.error


@pytest.mark.asyncio
async def test_test_feed(client_factory):
    url = "https://example.com/feed.xml"
    parser = FeedParser(client=client_factory({url: lambda r: httpx.Response(200, content=RSS_XML)}))
    assert await parser.test_feed(url) == {"success": True, "item_count": 3}

    missing = await parser.test_feed("https://example.com/missing.xml")
    assert missing["success"] is False
