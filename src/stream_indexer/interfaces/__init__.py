"""Protocol interfaces for the stream indexer components."""

from stream_indexer.interfaces.chain import ChainClient, RawLog
from stream_indexer.interfaces.decoder import EventDecoder
from stream_indexer.interfaces.gateway import PersistenceGateway

__all__ = [
    "ChainClient", "RawLog",
    "EventDecoder",
    "PersistenceGateway",
]
