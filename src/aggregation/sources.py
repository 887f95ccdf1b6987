"""
Source registry for the aggregation layer.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

FetchFn = Callable[[], Awaitable[List[Any]]]


@dataclass
class DataSource:
    """
    One independently polled upstream.
    `refresh_interval` is in seconds and doubles as the cache TTL.
    """
    id: str
    category: str
    name: str
    refresh_interval: float
    fetch: FetchFn
    max_errors: int = 3
    error_count: int = 0
    last_fetch: Optional[float] = None
    last_attempt: Optional[float] = None
    in_flight: bool = False

    @property
    def over_budget(self) -> bool:
        return self.error_count >= self.max_errors


class SourceRegistry:
    def __init__(self):
        self._sources: Dict[str, DataSource] = {}

    def register(self, source: DataSource) -> DataSource:
        if source.id in self._sources:
            raise ValueError(f"Source already registered: {source.id}")
        if source.refresh_interval <= 0:
            raise ValueError(f"Source {source.id} needs a positive refresh interval")
        self._sources[source.id] = source
        return source

    def get(self, source_id: str) -> Optional[DataSource]:
        return self._sources.get(source_id)

    def in_category(self, category: str) -> List[DataSource]:
        return [s for s in self._sources.values() if s.category == category]

    def ids(self, category: Optional[str] = None) -> List[str]:
        if category is None:
            return list(self._sources)
        return [s.id for s in self.in_category(category)]

    def categories(self) -> List[str]:
        return list(dict.fromkeys(s.category for s in self._sources.values()))

    def __iter__(self) -> Iterator[DataSource]:
        return iter(list(self._sources.values()))

    def __len__(self) -> int:
        return len(self._sources)
