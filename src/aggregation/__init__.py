"""
Aggregation module - client-side polling, caching and fan-out.
"""
from aggregation.cache import AggregationCache, CacheEntry, FailurePolicy
from aggregation.scheduler import PollingScheduler
from aggregation.service import AggregationService
from aggregation.sources import DataSource, SourceRegistry

__all__ = [
    "AggregationCache",
    "AggregationService",
    "CacheEntry",
    "DataSource",
    "FailurePolicy",
    "PollingScheduler",
    "SourceRegistry",
]
