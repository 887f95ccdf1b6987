"""
AggregationService - explicitly constructed facade over registry, cache and scheduler.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from aggregation.cache import AggregationCache, FailurePolicy, Subscriber
from aggregation.scheduler import PollingScheduler
from aggregation.sources import DataSource, SourceRegistry

logger = logging.getLogger(__name__)


class AggregationService:
    """
    Keeps dashboards fresh without hammering upstream APIs.

    Usage:
        service = AggregationService(sources)
        service.start()
        unsubscribe = service.subscribe_category("news", on_update)
        ...
        await service.stop()
    """

    def __init__(
        self,
        sources: Iterable[DataSource] = (),
        *,
        min_spacing: float = 5.0,
        stagger: float = 4.0,
        failure_policy: FailurePolicy = FailurePolicy.RESET,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = SourceRegistry()
        self.cache = AggregationCache(self.registry, failure_policy=failure_policy, clock=clock)
        self.scheduler = PollingScheduler(
            self.registry,
            self.cache,
            min_spacing=min_spacing,
            stagger=stagger,
            clock=clock,
        )
        self.clock = clock
        for source in sources:
            self.register(source)

    def register(self, source: DataSource) -> DataSource:
        self.registry.register(source)
        self.scheduler.schedule(source)
        return source

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def __aenter__(self) -> "AggregationService":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    def get_category_data(self, category: str) -> List[Any]:
        return self.cache.get_cached_data(category)

    def subscribe_category(self, category: str, callback: Subscriber) -> Callable[[], None]:
        return self.cache.subscribe(category, callback)

    async def force_refresh(self, category: Optional[str] = None) -> None:
        await self.scheduler.force_refresh(category)

    def get_data_source_status(self) -> Dict[str, Dict[str, Any]]:
        status: Dict[str, Dict[str, Any]] = {}
        for source in self.registry:
            entry = self.cache.get(source.id)
            status[source.id] = {
                "name": source.name,
                "category": source.category,
                "last_fetch": source.last_fetch,
                "cached_items": len(entry.data) if entry else 0,
                "is_stale": self.cache.is_stale(source.id),
                "error_count": source.error_count,
                "max_errors": source.max_errors,
                "over_budget": source.over_budget,
            }
        return status
