"""Data models for the stream indexer."""

from stream_indexer.models.events import EventKind, StreamEvent
from stream_indexer.models.records import (
    BatchReport,
    Stream,
    StreamFailure,
    StreamSnapshot,
)
from stream_indexer.models.config import IndexerConfig

__all__ = [
    "EventKind", "StreamEvent",
    "BatchReport", "Stream", "StreamFailure", "StreamSnapshot",
    "IndexerConfig",
]
