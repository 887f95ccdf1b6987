"""
Content normalizer.

Turns one provider item into a CanonicalArticle or CanonicalVideo.
Pure: no I/O, never raises. Items without a title or a canonical
link/video id normalize to None.
"""
import hashlib
import logging
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from core.entities import CanonicalArticle, CanonicalVideo, ContentStatus, FeedDescriptor
from core.taxonomy import (
    ARTICLE_CATEGORIES,
    BREAKING_KEYWORDS,
    DEFAULT_ARTICLE_CATEGORY,
    DEFAULT_LANGUAGE,
    DEFAULT_VIDEO_CATEGORY,
    LANGUAGE_ALIASES,
    MAX_TAGS,
    SUMMARY_CHARS,
    SUPPORTED_LANGUAGES,
    VIDEO_CATEGORIES,
    WORDS_PER_MINUTE,
)
from ingestion.base import ProviderItem, RawArticleItem, RawFeed, RawVideoItem

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_IMG_RE = re.compile(r"<img[^>]+src=\"([^\">]+)\"", re.IGNORECASE)
_VIDEO_ID_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]+)")
_CHANNEL_ID_RE = re.compile(r"channel_id=([a-zA-Z0-9_-]+)")


def strip_html(text: str) -> str:
    return _TAG_RE.sub("", text or "")


def clean_text(text: Optional[str]) -> str:
    """Strip tags and collapse whitespace."""
    if not text:
        return ""
    return _WS_RE.sub(" ", strip_html(text)).strip()


def content_hash(key: str, title: str, published: Optional[str]) -> str:
    """Dedup key: sha256 over `key|title|published`."""
    payload = f"{key}|{title}|{published or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def reading_time(text: str) -> str:
    words = len((text or "").split())
    minutes = math.ceil(words / WORDS_PER_MINUTE)
    if minutes < 1:
        return "< 1 min"
    if minutes == 1:
        return "1 min"
    return f"{minutes} min"


def normalize_language(language: Optional[str]) -> str:
    if not language:
        return DEFAULT_LANGUAGE
    code = language.strip().replace("_", "-").lower()
    if code in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[code]
    base = code.split("-")[0]
    if base in SUPPORTED_LANGUAGES:
        return base
    return DEFAULT_LANGUAGE


def extract_tags(item: RawArticleItem) -> List[str]:
    tags: List[str] = []
    for raw in [*item.categories, *item.tags]:
        if not raw:
            continue
        tag = str(raw).strip().lower()
        if len(tag) > 1 and tag not in tags:
            tags.append(tag)
        if len(tags) >= MAX_TAGS:
            break
    return tags


def _first_match(
    text: str,
    table: Sequence[Tuple[str, Iterable[str]]],
    default: str,
) -> str:
    for label, keywords in table:
        if any(keyword in text for keyword in keywords):
            return label
    return default


def categorize_article(title: str, content: str, tags: Sequence[str]) -> str:
    text = f"{title} {content} {' '.join(tags)}".lower()
    return _first_match(text, ARTICLE_CATEGORIES, DEFAULT_ARTICLE_CATEGORY)


def categorize_video(title: str, description: str, channel: str) -> str:
    text = f"{title} {description} {channel}".lower()
    return _first_match(text, VIDEO_CATEGORIES, DEFAULT_VIDEO_CATEGORY)


def is_breaking(title: str, tags: Sequence[str]) -> bool:
    text = f"{title} {' '.join(tags)}".lower()
    return any(keyword in text for keyword in BREAKING_KEYWORDS)


def extract_text(item: RawArticleItem) -> str:
    """Richest text field available, in provider preference order."""
    for value in (
        item.content_encoded,
        item.content,
        item.content_snippet,
        item.summary,
        item.description,
        item.media_description,
    ):
        if value and value.strip():
            return value
    return ""


def _extract_summary(item: RawArticleItem, content: str) -> str:
    summary = item.content_snippet or item.summary or item.description
    if summary:
        return summary
    if content:
        plain = strip_html(content)
        return plain[:SUMMARY_CHARS] + ("..." if len(plain) > SUMMARY_CHARS else "")
    return ""


def _extract_image(item: RawArticleItem) -> Optional[str]:
    if item.enclosure_url and (item.enclosure_type or "").startswith("image/"):
        return item.enclosure_url
    if item.media_thumbnail:
        return item.media_thumbnail
    if item.media_content_url and (item.media_content_type or "").startswith("image/"):
        return item.media_content_url
    match = _IMG_RE.search(item.content or item.content_encoded or "")
    if match:
        return match.group(1)
    return None


def parse_published(item: RawArticleItem) -> Optional[datetime]:
    if item.published:
        value = item.published
    else:
        value = _parse_date_string(item.pub_date)
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_date_string(raw: Optional[str]) -> Optional[datetime]:
    if not raw or not raw.strip():
        return None
    text = raw.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def extract_video_id(item: RawArticleItem) -> Optional[str]:
    if isinstance(item, RawVideoItem) and item.video_id:
        return item.video_id
    url = item.link or item.guid
    if not url:
        return None
    match = _VIDEO_ID_RE.search(url)
    return match.group(1) if match else None


def normalize_article(
    item: RawArticleItem,
    feed: FeedDescriptor,
    meta: RawFeed,
    fetched_at: datetime,
) -> Optional[CanonicalArticle]:
    if not item.title or not item.link:
        return None

    content = extract_text(item)
    title = clean_text(item.title)
    if not title:
        return None
    summary = clean_text(_extract_summary(item, content))
    body = clean_text(content)
    tags = extract_tags(item)

    return CanonicalArticle(
        hash=content_hash(item.link, item.title, item.pub_date),
        title=title,
        summary=summary,
        content=body,
        author=item.author or item.creator or feed.name or "Unknown",
        source=feed.name,
        source_url=item.link,
        feed_url=feed.url,
        published_at=parse_published(item) or fetched_at,
        fetched_at=fetched_at,
        category=categorize_article(title, body, tags),
        tags=tags,
        is_breaking=is_breaking(title, tags),
        read_time=reading_time(body or summary),
        status=ContentStatus.ACTIVE,
        views=0,
        language=normalize_language(meta.language or feed.language),
        image_url=_extract_image(item),
    )


def normalize_video(
    item: RawArticleItem,
    feed: FeedDescriptor,
    meta: RawFeed,
    fetched_at: datetime,
) -> Optional[CanonicalVideo]:
    if not item.title:
        return None
    video_id = extract_video_id(item)
    if not video_id:
        return None

    title = clean_text(item.title)
    if not title:
        return None
    description = clean_text(extract_text(item)) or NO_DESCRIPTION

    match = _CHANNEL_ID_RE.search(feed.url or "")
    if match:
        channel_id = match.group(1)
    else:
        channel_id = (item.channel_id if isinstance(item, RawVideoItem) else None) or ""
    channel_name = item.author or meta.title or meta.description or "Unknown Channel"
    duration = (item.duration if isinstance(item, RawVideoItem) else None) or "Unknown"

    return CanonicalVideo(
        hash=content_hash(video_id, item.title, item.pub_date),
        video_id=video_id,
        title=title,
        description=description,
        thumbnail=f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg",
        video_url=f"https://www.youtube.com/watch?v={video_id}",
        channel_name=channel_name,
        channel_id=channel_id,
        feed_url=feed.url,
        duration=duration,
        published_at=parse_published(item) or fetched_at,
        fetched_at=fetched_at,
        category=categorize_video(title, description, channel_name),
        tags=extract_tags(item),
        status=ContentStatus.ACTIVE,
        language=normalize_language(meta.language or feed.language),
    )


def normalize(
    item: ProviderItem,
    feed: FeedDescriptor,
    meta: Optional[RawFeed] = None,
    *,
    fetched_at: datetime,
) -> Union[CanonicalArticle, CanonicalVideo, None]:
    """
    Normalize one provider item for the given feed.

    Video feeds produce CanonicalVideo, every other feed kind produces
    CanonicalArticle. Malformed input yields None.
    """
    meta = meta or RawFeed()
    try:
        if feed.is_video or item.kind == "video":
            return normalize_video(item, feed, meta, fetched_at)
        return normalize_article(item, feed, meta, fetched_at)
    except (TypeError, ValueError, AttributeError) as e:
        logger.debug(f"Dropping malformed item from {feed.name}: {e}")
        return None
