"""
Per-source TTL cache with a merged, deduplicated view per category
and synchronous fan-out to category subscribers.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from aggregation.sources import SourceRegistry
from processing.deduplicator import merge_unique

logger = logging.getLogger(__name__)

Subscriber = Callable[[List[Any]], None]


class FailurePolicy(str, Enum):
    RESET = "reset"
    KEEP_LAST_GOOD = "keep_last_good"


@dataclass
class CacheEntry:
    data: List[Any]
    timestamp: float
    ttl: float
    failed: bool = False

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class AggregationCache:
    """
    Owns every CacheEntry for the process. Nothing here is persisted.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        failure_policy: FailurePolicy = FailurePolicy.RESET,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.failure_policy = FailurePolicy(failure_policy)
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._subscribers: Dict[str, List[Subscriber]] = {}

    def get(self, source_id: str) -> Optional[CacheEntry]:
        return self._entries.get(source_id)

    def store(self, source_id: str, data: List[Any], ttl: float) -> CacheEntry:
        entry = CacheEntry(data=list(data), timestamp=self.clock(), ttl=ttl)
        self._entries[source_id] = entry
        return entry

    def store_failure(self, source_id: str, ttl: float) -> CacheEntry:
        """
        Apply the failure policy: RESET replaces the entry with an empty one,
        KEEP_LAST_GOOD keeps the previous data and flags it stale.
        """
        previous = self._entries.get(source_id)
        if self.failure_policy == FailurePolicy.KEEP_LAST_GOOD and previous is not None:
            previous.failed = True
            return previous
        entry = CacheEntry(data=[], timestamp=self.clock(), ttl=ttl, failed=True)
        self._entries[source_id] = entry
        return entry

    def is_stale(self, source_id: str) -> bool:
        entry = self._entries.get(source_id)
        if entry is None:
            return True
        return entry.failed or not entry.is_fresh(self.clock())

    def get_cached_data(self, category: str) -> List[Any]:
        """
        Fresh entries of every source in the category, in registration order,
        flattened and deduplicated.
        """
        now = self.clock()
        batches = []
        for source in self.registry.in_category(category):
            entry = self._entries.get(source.id)
            if entry is not None and entry.is_fresh(now):
                batches.append(entry.data)
        return merge_unique(batches)

    def subscribe(self, category: str, callback: Subscriber) -> Callable[[], None]:
        """
        Call `callback` now with the current snapshot and again after every
        poll of a source in `category`. Returns an unsubscribe function.
        """
        def listener(data: List[Any]) -> None:
            callback(data)

        self._subscribers.setdefault(category, []).append(listener)
        self._deliver(category, listener, self.get_cached_data(category))

        def unsubscribe() -> None:
            listeners = self._subscribers.get(category, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def subscriber_count(self, category: str) -> int:
        return len(self._subscribers.get(category, []))

    def notify(self, category: str) -> None:
        listeners = list(self._subscribers.get(category, []))
        if not listeners:
            return
        snapshot = self.get_cached_data(category)
        for listener in listeners:
            self._deliver(category, listener, list(snapshot))

    def _deliver(self, category: str, listener: Subscriber, data: List[Any]) -> None:
        try:
            listener(data)
        except Exception:
            logger.exception(f"Subscriber for {category} raised", extra={"category": category})

    def clear(self) -> None:
        self._entries.clear()
