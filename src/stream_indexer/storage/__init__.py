"""Persistence gateway implementations."""

from stream_indexer.storage.sqlite import SQLitePersistenceGateway

__all__ = ["SQLitePersistenceGateway"]
