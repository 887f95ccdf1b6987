"""
Workflows module - server-side ingestion orchestration.
"""
from workflows.feed_ingestion import FeedIngestionPipeline, IngestResult

__all__ = [
    "FeedIngestionPipeline",
    "IngestResult",
]
