"""Exception hierarchy for the stream indexer."""

from __future__ import annotations


class StreamIndexerError(Exception):
    """Base class for all indexer errors."""


class RpcUnavailable(StreamIndexerError):
    """The chain node could not be reached or timed out."""


class RangeTooLarge(StreamIndexerError):
    """A log query exceeded the node's block-range or result-size limits."""

    def __init__(self, from_block: int, to_block: int, message: str = "") -> None:
        self.from_block = from_block
        self.to_block = to_block
        super().__init__(message or f"block range {from_block}-{to_block} too large")


class ContractCallFailed(StreamIndexerError):
    """A read-only contract call reverted or returned malformed data."""


class DecodeError(StreamIndexerError):
    """A raw log did not match the expected event layout."""


class PersistenceError(StreamIndexerError):
    """The persistence gateway failed to store data."""


class BatchAggregationError(StreamIndexerError):
    """A batch-level step failed; the watermark was not advanced."""
