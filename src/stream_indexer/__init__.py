"""stream_indexer - incremental on-chain indexer for SimpleStream contracts."""

__version__ = "0.1.0"
