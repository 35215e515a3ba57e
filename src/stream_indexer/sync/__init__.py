"""Stream synchronization: per-stream engine and batch scheduler."""

from stream_indexer.sync.batch import BatchScheduler
from stream_indexer.sync.engine import StreamSyncEngine

__all__ = ["BatchScheduler", "StreamSyncEngine"]
