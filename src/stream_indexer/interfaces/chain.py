"""ChainClient protocol - read-only access to an EVM JSON-RPC node."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

# A log entry as returned by eth_getLogs (AttributeDict from web3, or a plain dict)
RawLog = Mapping[str, Any]


class ChainClient(Protocol):
    """Thin wrapper over a JSON-RPC connection to the chain node."""

    async def current_height(self) -> int:
        """Latest block number known to the node."""
        ...

    async def query_logs(
        self,
        contract_address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """All logs for ``event_signature`` in ``[from_block, to_block]`` inclusive.

        An empty range (``from_block > to_block``) returns [] without a node call.
        """
        ...

    async def block_timestamp(self, block_number: int) -> int:
        """Block timestamp in seconds."""
        ...

    async def read_contract_value(self, contract_address: str, selector_name: str) -> int:
        """Read ``cap``, ``frequency``, ``last`` or the native ``balance``."""
        ...
