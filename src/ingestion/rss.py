"""
Feed parser: fetches a syndication feed and normalizes its entries.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
import httpx

from core.entities import CanonicalArticle, CanonicalVideo, FeedDescriptor
from ingestion.base import RawArticleItem, RawFeed, RawVideoItem
from processing.normalizer import normalize

logger = logging.getLogger(__name__)

USER_AGENT = "feedpulse-rss-bot/1.0"
ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"
DEFAULT_TIMEOUT = 30.0


@dataclass
class ParseResult:
    success: bool
    articles: List[CanonicalArticle] = field(default_factory=list)
    videos: List[CanonicalVideo] = field(default_factory=list)
    response_time_ms: float = 0.0
    items_found: int = 0
    new_items: int = 0
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def items(self) -> list:
        return [*self.articles, *self.videos]


def _first_value(entry: Any, key: str) -> Optional[str]:
    """feedparser stores repeated elements as a list of dicts."""
    values = entry.get(key) or []
    if isinstance(values, list) and values:
        first = values[0]
        if isinstance(first, dict):
            return first.get("url") or first.get("href") or first.get("value")
    if isinstance(values, str):
        return values
    return None


def _published(entry: Any) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    try:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def entry_to_item(entry: Any, video: bool = False) -> RawArticleItem:
    """
    Convert a feedparser entry into a provider item.
    """
    content = entry.get("content") or []
    content_value = content[0].get("value") if content and isinstance(content[0], dict) else None

    enclosure_url = enclosure_type = None
    for enclosure in entry.get("enclosures") or []:
        enclosure_url = enclosure.get("href") or enclosure.get("url")
        enclosure_type = enclosure.get("type")
        break

    media_content = entry.get("media_content") or []
    media_content_url = media_content_type = None
    if media_content and isinstance(media_content[0], dict):
        media_content_url = media_content[0].get("url")
        media_content_type = media_content[0].get("type")

    fields = dict(
        title=entry.get("title"),
        link=entry.get("link"),
        guid=entry.get("id"),
        pub_date=entry.get("published") or entry.get("updated"),
        published=_published(entry),
        content_encoded=content_value,
        summary=entry.get("summary"),
        description=entry.get("description"),
        media_description=entry.get("media_description"),
        author=entry.get("author"),
        creator=entry.get("dc_creator"),
        categories=[t.get("term") for t in entry.get("tags") or [] if t.get("term")],
        enclosure_url=enclosure_url,
        enclosure_type=enclosure_type,
        media_thumbnail=_first_value(entry, "media_thumbnail"),
        media_content_url=media_content_url,
        media_content_type=media_content_type,
    )
    if video:
        return RawVideoItem(
            **fields,
            video_id=entry.get("yt_videoid"),
            channel_id=entry.get("yt_channelid"),
            duration=entry.get("itunes_duration") or entry.get("duration"),
        )
    return RawArticleItem(**fields)


class FeedParser:
    """
    Fetches feeds over HTTP and normalizes their entries.
    Never raises: failures come back as ParseResult(success=False).
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, "Accept": ACCEPT}
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self.headers, timeout=self.timeout)
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, follow_redirects=True
        ) as client:
            return await client.get(url)

    async def _download(self, url: str):
        resp = await self._get(url)
        resp.raise_for_status()
        parsed = feedparser.parse(resp.content)
        if parsed.get("bozo") and not parsed.entries:
            raise ValueError(f"Malformed feed: {parsed.get('bozo_exception')}")
        return parsed, resp.status_code

    async def parse_feed(self, feed: FeedDescriptor, max_items: int = 50) -> ParseResult:
        start = time.perf_counter()
        status_code: Optional[int] = None

        try:
            logger.info(f"Parsing feed: {feed.name} ({feed.url})")
            parsed, status_code = await self._download(feed.url)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            if isinstance(e, httpx.HTTPStatusError):
                status_code = e.response.status_code
            logger.error(f"Feed fetch failed for {feed.url}: {e}", extra={"feed": feed.name})
            return ParseResult(
                success=False,
                response_time_ms=elapsed,
                error=str(e) or e.__class__.__name__,
                status_code=status_code,
            )

        elapsed = (time.perf_counter() - start) * 1000
        entries = list(parsed.entries or [])[: max(0, max_items)]
        if not entries:
            return ParseResult(success=True, response_time_ms=elapsed, status_code=status_code)

        meta_src = parsed.get("feed") or {}
        meta = RawFeed(
            title=meta_src.get("title"),
            description=meta_src.get("subtitle") or meta_src.get("description"),
            language=meta_src.get("language"),
        )
        fetched_at = datetime.now(timezone.utc)
        result = ParseResult(
            success=True,
            response_time_ms=elapsed,
            items_found=len(entries),
            status_code=status_code,
        )

        for entry in entries:
            try:
                item = entry_to_item(entry, video=feed.is_video)
            except ValueError as e:
                logger.debug(f"Skipping unreadable entry in {feed.name}: {e}")
                continue
            record = normalize(item, feed, meta, fetched_at=fetched_at)
            if record is None:
                continue
            if isinstance(record, CanonicalVideo):
                result.videos.append(record)
            else:
                result.articles.append(record)

        result.new_items = len(result.articles) + len(result.videos)
        logger.info(f"Parsed {result.new_items}/{result.items_found} items from {feed.name}")
        return result

    async def test_feed(self, url: str) -> dict:
        """Connectivity check for a feed URL."""
        try:
            parsed, _ = await self._download(url)
            return {"success": True, "item_count": len(parsed.entries or [])}
        except Exception as e:
            return {"success": False, "error": str(e) or e.__class__.__name__}
