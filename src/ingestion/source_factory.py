"""
Source Factory - Creates aggregation sources from configuration.
"""
import logging
from dataclasses import asdict
from typing import Any, List, Optional

import httpx

from aggregation.sources import DataSource, FetchFn
from core.entities import ContentFilters, ContentKind
from services.config import Config, SourceConfig, get_enabled_sources

logger = logging.getLogger(__name__)

USER_AGENT = "feedpulse-aggregator/1.0"


def _absolute_url(url: str, base_url: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def http_json_fetcher(
    url: str,
    items_key: Optional[str] = None,
    timeout: float = 30.0,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchFn:
    """
    Build a fetch function that GETs a JSON endpoint and returns its list payload.
    Raises on transport errors and non-list payloads; the scheduler records those.
    """

    def _pick(payload: Any) -> List[Any]:
        if items_key:
            payload = payload.get(items_key, []) if isinstance(payload, dict) else None
        if not isinstance(payload, list):
            raise ValueError(f"Expected a JSON list from {url}")
        return payload

    async def fetch() -> List[Any]:
        if client is not None:
            resp = await client.get(url, timeout=timeout)
            resp.raise_for_status()
            return _pick(resp.json())
        async with httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT}) as c:
            resp = await c.get(url)
            resp.raise_for_status()
            return _pick(resp.json())

    return fetch


def store_fetcher(pipeline, kind: str = "article", category: Optional[str] = None, limit: int = 50) -> FetchFn:
    """
    Build a fetch function reading the ingestion pipeline's newest content.
    Records are keyed by content hash; the row id stays available as `record_id`.
    """

    async def fetch() -> List[Any]:
        page = await pipeline.list_content(
            ContentKind(kind), ContentFilters(category=category), page=1, limit=limit
        )
        return [{**asdict(record), "id": record.hash, "record_id": record.id} for record in page.items]

    return fetch


def create_source(
    source_config: SourceConfig,
    base_url: str = "",
    pipeline=None,
    client: Optional[httpx.AsyncClient] = None,
) -> DataSource:
    """
    Create a DataSource from configuration.

    Raises:
        ValueError: If the source type is unknown or misconfigured
    """
    source_type = source_config.type.lower()

    if source_type == "http_json":
        if not source_config.url:
            raise ValueError("http_json source requires 'url' field")
        fetch = http_json_fetcher(
            _absolute_url(source_config.url, base_url),
            items_key=source_config.items_key,
            client=client,
        )

    elif source_type == "store":
        if pipeline is None:
            raise ValueError("store source requires an ingestion pipeline")
        fetch = store_fetcher(
            pipeline,
            kind=source_config.content_kind,
            category=source_config.content_category,
            limit=source_config.limit,
        )

    else:
        raise ValueError(f"Unknown source type: {source_type}")

    return DataSource(
        id=source_config.id,
        category=source_config.category,
        name=source_config.name or source_config.id,
        refresh_interval=source_config.refresh_minutes * 60,
        max_errors=source_config.max_errors,
        fetch=fetch,
    )


def create_sources_from_config(
    config: Config,
    pipeline=None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[DataSource]:
    """
    Create all enabled sources; misconfigured ones are logged and skipped.
    """
    sources = []
    for source_config in get_enabled_sources(config):
        try:
            sources.append(create_source(source_config, config.API_BASE_URL, pipeline, client))
            logger.info(f"Created {source_config.type} source: {source_config.id}")
        except Exception as e:
            logger.error(f"Failed to create source {source_config.id}: {e}")
    return sources
