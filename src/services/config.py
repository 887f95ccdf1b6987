"""
Loads and handles config from config.yml
DATABASE_PATH, API_BASE_URL and LOG_LEVEL may be overridden from the environment / .env
"""
import os
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from aggregation.cache import FailurePolicy
from core.entities import FeedDescriptor, FeedKind


class FeedConfig(BaseModel):
    """Configuration for a single syndication feed."""
    name: str
    url: str
    kind: FeedKind = FeedKind.NEWS
    category: str = "General"
    enabled: bool = True
    fetch_interval: int = Field(30, ge=1)  # minutes
    description: Optional[str] = None
    language: Optional[str] = None

    def to_descriptor(self) -> FeedDescriptor:
        return FeedDescriptor(
            name=self.name,
            url=self.url,
            kind=self.kind,
            category=self.category,
            is_active=self.enabled,
            fetch_interval=self.fetch_interval,
            description=self.description,
            language=self.language,
        )


class SourceConfig(BaseModel):
    """Configuration for a single aggregation source."""
    id: str
    type: str  # http_json, store
    category: str
    name: Optional[str] = None
    enabled: bool = True
    refresh_minutes: float = Field(15, gt=0)
    max_errors: int = 3
    url: Optional[str] = None  # For http_json; relative paths join API_BASE_URL
    items_key: Optional[str] = None  # For http_json
    content_kind: str = "article"  # For store
    content_category: Optional[str] = None  # For store
    limit: int = 50  # For store


class Config(BaseModel):
    # Core
    DATABASE_PATH: str = "data/feedpulse.db"
    LOG_LEVEL: str = "INFO"

    # Feed fetching
    USER_AGENT: str = "feedpulse-rss-bot/1.0"
    FETCH_TIMEOUT_SECONDS: float = 30.0
    MAX_ITEMS_PER_FEED: int = 50
    RETENTION_DAYS: int = 30
    REFRESH_TICK_SECONDS: float = 60.0

    # Aggregation
    API_BASE_URL: str = "http://localhost:3000"
    POLL_MIN_SPACING_SECONDS: float = 5.0
    POLL_STAGGER_SECONDS: float = 4.0
    CACHE_FAILURE_POLICY: FailurePolicy = FailurePolicy.RESET

    feeds: List[FeedConfig] = []
    sources: List[SourceConfig] = []


def _bool(value: str | bool) -> bool:
    """Convert string or bool to boolean."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def _scalar_str(value: Any) -> str:
    """Undo YAML 1.1 scalar typing for fields that are always text."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def _get_config_path(path: Optional[str] = None) -> str:
    """Get the path to config.yml, handling different working directories."""
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Cannot find {path}")
        return path

    env_path = os.getenv("FEEDPULSE_CONFIG")
    if env_path and os.path.exists(env_path):
        return env_path

    # Try relative path first
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    # Try from project root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    raise FileNotFoundError("Cannot find resources/config.yml")


def _parse_feeds(data: List[Dict[str, Any]]) -> List[FeedConfig]:
    feeds = []
    for feed in data or []:
        feeds.append(FeedConfig(
            name=_scalar_str(feed.get("name", "")),
            url=feed.get("url", ""),
            kind=feed.get("kind", "news"),
            category=_scalar_str(feed.get("category", "General")),
            enabled=_bool(feed.get("enabled", True)),
            fetch_interval=int(feed.get("fetch_interval", 30)),
            description=feed.get("description"),
            language=feed.get("language"),
        ))
    return feeds


def _parse_sources(data: List[Dict[str, Any]]) -> List[SourceConfig]:
    sources = []
    for src in data or []:
        fields = dict(src)
        # YAML reads bare `off`/`yes`/`123` as bool or int
        for key in ("id", "type", "category", "name", "url", "items_key", "content_category"):
            if fields.get(key) is not None:
                fields[key] = _scalar_str(fields[key])
        fields["enabled"] = _bool(src.get("enabled", True))
        sources.append(SourceConfig(**fields))
    return sources


def parse_config(config: Dict[str, Any]) -> Config:
    """Build a Config from already-loaded YAML data plus environment overrides."""
    return Config(
        DATABASE_PATH=os.getenv("DATABASE_PATH") or config.get("DATABASE_PATH", "data/feedpulse.db"),
        LOG_LEVEL=os.getenv("LOG_LEVEL") or config.get("LOG_LEVEL", "INFO"),

        USER_AGENT=config.get("USER_AGENT", "feedpulse-rss-bot/1.0"),
        FETCH_TIMEOUT_SECONDS=float(config.get("FETCH_TIMEOUT_SECONDS", 30)),
        MAX_ITEMS_PER_FEED=int(config.get("MAX_ITEMS_PER_FEED", 50)),
        RETENTION_DAYS=int(config.get("RETENTION_DAYS", 30)),
        REFRESH_TICK_SECONDS=float(config.get("REFRESH_TICK_SECONDS", 60)),

        API_BASE_URL=os.getenv("API_BASE_URL") or config.get("API_BASE_URL", "http://localhost:3000"),
        POLL_MIN_SPACING_SECONDS=float(config.get("POLL_MIN_SPACING_SECONDS", 5)),
        POLL_STAGGER_SECONDS=float(config.get("POLL_STAGGER_SECONDS", 4)),
        CACHE_FAILURE_POLICY=config.get("CACHE_FAILURE_POLICY", "reset"),

        feeds=_parse_feeds(config.get("feeds", [])),
        sources=_parse_sources(config.get("sources", [])),
    )


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from config.yml and overrides from .env."""
    load_dotenv()

    config_path = _get_config_path(path)

    with open(config_path, 'r') as file:
        config = yaml.safe_load(file) or {}

    return parse_config(config)


def get_enabled_feeds(config: Config) -> List[FeedConfig]:
    return [feed for feed in config.feeds if feed.enabled]


def get_enabled_sources(config: Config) -> List[SourceConfig]:
    """Get only enabled sources from the config."""
    return [src for src in config.sources if src.enabled]
