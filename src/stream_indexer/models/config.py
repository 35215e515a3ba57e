"""Configuration models for the indexer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IndexerConfig:
    """Complete indexer configuration."""

    # Indexer
    max_streams: int = 100  # streams per batch; also the concurrency ceiling
    batch_interval: int = 60  # seconds between batches in watch mode
    error_backoff: int = 30  # seconds
    log_level: str = "info"

    # Chain
    rpc_url: str = "http://127.0.0.1:8545"
    request_timeout: int = 30  # seconds per RPC request
    max_block_range: int = 0  # 0 = query the whole range at once

    # Storage
    db_path: str = "~/.stream_indexer/state.db"
