from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ContentKind(str, Enum):
    ARTICLE = "article"
    VIDEO = "video"


class ContentStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    HIDDEN = "hidden"


class FeedKind(str, Enum):
    NEWS = "news"
    BLOG = "blog"
    RESEARCH = "research"
    VIDEO = "video"


@dataclass(frozen=True)
class CanonicalArticle:
    """
    Canonical representation of an ingested article.
    Only status, views and category may change after creation.
    """
    hash: str
    title: str
    summary: str
    content: str
    author: str
    source: str
    source_url: str
    feed_url: str
    published_at: datetime
    fetched_at: datetime
    category: str
    tags: List[str] = field(default_factory=list)
    is_breaking: bool = False
    read_time: str = "< 1 min"
    status: ContentStatus = ContentStatus.ACTIVE
    views: int = 0
    language: str = "en"
    image_url: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class CanonicalVideo:
    """
    Canonical representation of an ingested video.
    Counters start at zero; the content platform fills them in later.
    """
    hash: str
    video_id: str
    title: str
    description: str
    thumbnail: str
    video_url: str
    channel_name: str
    channel_id: str
    feed_url: str
    duration: str
    published_at: datetime
    fetched_at: datetime
    category: str
    tags: List[str] = field(default_factory=list)
    status: ContentStatus = ContentStatus.ACTIVE
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    language: str = "en"
    id: Optional[int] = None


class FeedDescriptor(BaseModel):
    """
    A configured syndication feed and its health counters.
    """
    id: Optional[int] = None
    name: str
    url: str
    kind: FeedKind = FeedKind.NEWS
    category: str = "General"
    is_active: bool = True
    fetch_interval: int = Field(30, ge=1)  # minutes
    failure_count: int = Field(0, ge=0)
    avg_response_time: float = 0.0  # ms
    health_score: int = 100
    last_fetched_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    description: Optional[str] = None
    language: Optional[str] = None

    @field_validator("health_score", mode="before")
    @classmethod
    def _clamp_health(cls, value):
        return max(0, min(100, int(value)))

    @property
    def is_video(self) -> bool:
        return self.kind == FeedKind.VIDEO


@dataclass(frozen=True)
class FetchLog:
    """
    One fetch attempt against a feed. Append-only.
    """
    feed_id: int
    feed_url: str
    fetched_at: datetime
    success: bool
    response_time: float
    items_found: int = 0
    new_items: int = 0
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class ContentFilters:
    category: Optional[str] = None
    source: Optional[str] = None
    status: ContentStatus = ContentStatus.ACTIVE
    search: Optional[str] = None


@dataclass
class Page:
    items: list
    total: int
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages
