"""EVM chain integration components."""

from stream_indexer.chain.client import Web3ChainClient
from stream_indexer.chain.decoder import StreamEventDecoder
from stream_indexer.chain.units import format_ether, format_units, parse_units

__all__ = [
    "Web3ChainClient",
    "StreamEventDecoder",
    "format_ether", "format_units", "parse_units",
]
