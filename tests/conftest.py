from typing import Callable, Dict

import httpx
import pytest

from core.entities import FeedDescriptor, FeedKind
from services.database import Database

RSS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>X</title>
    <link>https://example.com</link>
    <description>Example feed</description>
    <language>en-US</language>
    <item>
      <title>OpenAI ships a new LLM</title>
      <link>https://example.com/a/1</link>
      <pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>
      <description>Short summary</description>
      <category>AI</category>
      <category>Breaking</category>
    </item>
    <item>
      <title>Quarterly funding round closes</title>
      <link>https://example.com/a/2</link>
      <pubDate>Tue, 02 Jan 2024 10:00:00 GMT</pubDate>
      <description>Another summary</description>
    </item>
    <item>
      <link>https://example.com/a/3</link>
      <description>An item without a title</description>
    </item>
  </channel>
</rss>
"""

EMPTY_RSS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Empty</title><link>https://example.com</link>
<description>Nothing here</description></channel></rss>
"""

YOUTUBE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
  <title>Two Minute Papers</title>
  <entry>
    <id>yt:video:abc123XYZ_-</id>
    <yt:videoId>abc123XYZ_-</yt:videoId>
    <yt:channelId>UCchan</yt:channelId>
    <title>Tutorial: how to fine-tune a model</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=abc123XYZ_-"/>
    <author><name>Two Minute Papers</name></author>
    <published>2024-01-03T12:00:00+00:00</published>
  </entry>
  <entry>
    <id>yt:video:missing</id>
    <title>No link or id here</title>
    <published>2024-01-04T12:00:00+00:00</published>
  </entry>
</feed>
"""


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(str(tmp_path / "test.db"))


@pytest.fixture
def news_feed() -> FeedDescriptor:
    return FeedDescriptor(
        name="X",
        url="https://example.com/a.xml",
        kind=FeedKind.NEWS,
        category="Technology News",
        fetch_interval=30,
    )


@pytest.fixture
def video_feed() -> FeedDescriptor:
    return FeedDescriptor(
        name="Two Minute Papers",
        url="https://www.youtube.com/feeds/videos.xml?channel_id=UCchan",
        kind=FeedKind.VIDEO,
        category="AI Videos",
        fetch_interval=60,
    )


def make_client(routes: Dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by per-URL handlers."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        return route(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def client_factory():
    return make_client
