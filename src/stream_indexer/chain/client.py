"""Web3 chain client - block height, log queries, block timestamps and contract reads."""

from __future__ import annotations

import asyncio
import logging

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from stream_indexer.chain.abi import (
    BALANCE_SELECTOR,
    CONTRACT_SELECTORS,
    SIMPLE_STREAM_ABI,
    event_topic,
)
from stream_indexer.errors import ContractCallFailed, RangeTooLarge, RpcUnavailable
from stream_indexer.interfaces.chain import RawLog

log = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)

# Substrings node providers use when eth_getLogs exceeds their limits
_RANGE_LIMIT_HINTS = (
    "block range",
    "query returned more than",
    "too many logs",
    "too many results",
    "is limited to a",
    "range is too large",
    "response size exceeded",
    "exceed maximum block range",
)

# Throttling is a node availability problem, never a range problem
_RATE_LIMIT_HINTS = (
    "too many requests",
    "rate limit",
    "rate-limit",
)


def is_range_limit_error(exc: BaseException) -> bool:
    """True if a node error looks like a log-range / result-size limit."""
    if isinstance(exc, _TRANSPORT_ERRORS):
        return False
    msg = str(exc).lower()
    if any(hint in msg for hint in _RATE_LIMIT_HINTS):
        return False
    return any(hint in msg for hint in _RANGE_LIMIT_HINTS)


class Web3ChainClient:
    """Read-only client for SimpleStream contracts over JSON-RPC.

    Performs no pagination: callers bound the block range of each log query.
    Accepts an AsyncWeb3 instance via dependency injection so the same
    connection can be shared, or builds one from ``rpc_url``.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        request_timeout: int = 30,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url is required when no AsyncWeb3 instance is given")
            w3 = AsyncWeb3(
                AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=request_timeout)},
                )
            )
        self._w3 = w3

    async def close(self) -> None:
        """Close the provider's HTTP session, if it keeps one."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    async def current_height(self) -> int:
        try:
            return int(await self._w3.eth.block_number)
        except Exception as exc:
            raise RpcUnavailable(f"eth_blockNumber failed: {exc}") from exc

    async def query_logs(
        self,
        contract_address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        if from_block > to_block:
            return []

        params = {
            "address": Web3.to_checksum_address(contract_address),
            "topics": [event_topic(event_signature)],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        try:
            logs = await self._w3.eth.get_logs(params)
        except Exception as exc:
            if is_range_limit_error(exc):
                raise RangeTooLarge(from_block, to_block, str(exc)) from exc
            raise RpcUnavailable(
                f"eth_getLogs {event_signature} {from_block}-{to_block} failed: {exc}"
            ) from exc

        log.debug(
            "%d %s logs for %s in %d-%d",
            len(logs), event_signature.split("(")[0], contract_address, from_block, to_block,
        )
        return list(logs)

    async def block_timestamp(self, block_number: int) -> int:
        try:
            block = await self._w3.eth.get_block(block_number)
        except Exception as exc:
            raise RpcUnavailable(f"eth_getBlockByNumber({block_number}) failed: {exc}") from exc
        if block is None:
            raise RpcUnavailable(f"block {block_number} unknown to node")
        return int(block["timestamp"])

    async def read_contract_value(self, contract_address: str, selector_name: str) -> int:
        address = Web3.to_checksum_address(contract_address)
        try:
            if selector_name == BALANCE_SELECTOR:
                return int(await self._w3.eth.get_balance(address))
            if selector_name not in CONTRACT_SELECTORS:
                raise ContractCallFailed(f"unknown contract selector {selector_name!r}")
            contract = self._w3.eth.contract(address=address, abi=SIMPLE_STREAM_ABI)
            fn = getattr(contract.functions, selector_name)
            return int(await fn().call())
        except ContractCallFailed:
            raise
        except _TRANSPORT_ERRORS as exc:
            raise RpcUnavailable(f"{selector_name}() on {address} failed: {exc}") from exc
        except Exception as exc:
            raise ContractCallFailed(f"{selector_name}() on {address} failed: {exc}") from exc
