"""
Polling scheduler: one cancellable repeating task per registered source.
"""
import asyncio
import logging
import random
import time
from typing import Callable, Dict, Optional

from aggregation.cache import AggregationCache
from aggregation.sources import DataSource, SourceRegistry

logger = logging.getLogger(__name__)


class PollingScheduler:
    def __init__(
        self,
        registry: SourceRegistry,
        cache: AggregationCache,
        min_spacing: float = 5.0,
        stagger: float = 4.0,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.min_spacing = min_spacing
        self.stagger = stagger
        self.clock = clock
        self.rng = rng or random.Random()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Schedule every registered source; first polls are staggered."""
        if self._started:
            logger.warning("Polling scheduler is already running")
            return
        asyncio.get_running_loop()
        self._started = True
        for source in self.registry:
            self._spawn(source)
        logger.info(f"Polling scheduler started with {len(self._tasks)} sources")

    def schedule(self, source: DataSource) -> None:
        """Start polling a source registered after start()."""
        if self._started and source.id not in self._tasks:
            self._spawn(source)

    def _spawn(self, source: DataSource) -> None:
        self._tasks[source.id] = asyncio.get_running_loop().create_task(
            self._run_source(source), name=f"poll:{source.id}"
        )

    async def stop(self) -> None:
        self._started = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Polling scheduler stopped")

    async def _run_source(self, source: DataSource) -> None:
        await asyncio.sleep(self.rng.uniform(0, self.stagger) if self.stagger > 0 else 0)
        while True:
            await self.poll_source(source.id)
            await asyncio.sleep(source.refresh_interval)

    async def poll_source(self, source_id: str) -> bool:
        """
        Poll one source and publish the outcome. Returns False when the poll
        was skipped by the re-entry guard or the source is unknown.
        """
        source = self.registry.get(source_id)
        if source is None:
            return False

        now = self.clock()
        if source.in_flight:
            return False
        if source.last_attempt is not None and now - source.last_attempt < self.min_spacing:
            return False
        source.in_flight = True
        source.last_attempt = now

        try:
            data = await source.fetch()
        except Exception as e:
            source.error_count += 1
            logger.error(
                f"Error fetching {source.name}: {e}",
                extra={"source": source.id},
            )
            if source.over_budget:
                logger.warning(
                    f"{source.name} has failed {source.error_count} times "
                    f"(budget {source.max_errors})",
                    extra={"source": source.id},
                )
            self.cache.store_failure(source.id, source.refresh_interval)
        else:
            items = list(data) if isinstance(data, (list, tuple)) else []
            source.last_fetch = self.clock()
            source.error_count = 0
            self.cache.store(source.id, items, source.refresh_interval)
        finally:
            source.in_flight = False

        self.cache.notify(source.category)
        return True

    async def force_refresh(self, category: Optional[str] = None) -> None:
        """Poll every source (or a category's sources) and wait for all to settle."""
        ids = self.registry.ids(category)
        await asyncio.gather(*(self.poll_source(i) for i in ids), return_exceptions=True)
