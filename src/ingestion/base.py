"""
Provider record shapes.
Raw feed data is converted into these models at the parser boundary and
consumed only by the normalizer.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class RawFeed(BaseModel):
    """
    Feed-level metadata of a parsed syndication document.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None


class RawArticleItem(BaseModel):
    """
    One entry from a news/blog/research feed.
    """
    kind: Literal["article"] = "article"
    title: Optional[str] = None
    link: Optional[str] = None
    guid: Optional[str] = None
    pub_date: Optional[str] = None
    published: Optional[datetime] = None
    content_encoded: Optional[str] = None
    content: Optional[str] = None
    content_snippet: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    media_description: Optional[str] = None
    author: Optional[str] = None
    creator: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    enclosure_url: Optional[str] = None
    enclosure_type: Optional[str] = None
    media_thumbnail: Optional[str] = None
    media_content_url: Optional[str] = None
    media_content_type: Optional[str] = None


class RawVideoItem(RawArticleItem):
    """
    One entry from a video-channel feed.
    """
    kind: Literal["video"] = "video"
    video_id: Optional[str] = None
    channel_id: Optional[str] = None
    duration: Optional[str] = None


ProviderItem = Annotated[Union[RawArticleItem, RawVideoItem], Field(discriminator="kind")]
