"""Stream sync engine - recompute one stream's snapshot over a block range."""

from __future__ import annotations

import asyncio
import logging

from stream_indexer.chain.abi import (
    BALANCE_SELECTOR,
    DEPOSIT_SIGNATURE,
    WITHDRAW_SIGNATURE,
)
from stream_indexer.chain.units import format_ether
from stream_indexer.errors import DecodeError, RangeTooLarge
from stream_indexer.interfaces.chain import ChainClient, RawLog
from stream_indexer.interfaces.decoder import EventDecoder
from stream_indexer.models.events import EventKind, StreamEvent
from stream_indexer.models.records import Stream, StreamSnapshot

log = logging.getLogger(__name__)


def _block_of(raw_log: RawLog) -> int:
    try:
        return int(raw_log["blockNumber"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"log without a usable blockNumber: {exc}") from exc


class StreamSyncEngine:
    """Builds a StreamSnapshot for one stream from chain state.

    Each sync:
    1. Resolves cap/frequency (cached on the stream once read)
    2. Queries Withdraw and Deposit logs over [from_block, to_block]
    3. Decodes them with per-block timestamps
    4. Refreshes the withdraw counter only when withdraws were found
    5. Reads the current native balance

    Errors propagate unchanged; a failed sync yields no snapshot.

    Log queries are split into windows of ``max_block_range`` blocks (0 means
    one query for the whole range). A window the node rejects as too large is
    halved and retried until it is a single block.
    """

    def __init__(
        self,
        chain: ChainClient,
        decoder: EventDecoder,
        max_block_range: int = 0,
    ) -> None:
        self._chain = chain
        self._decoder = decoder
        self._max_block_range = max(0, max_block_range)

    async def sync(self, stream: Stream, from_block: int, to_block: int) -> StreamSnapshot:
        address = stream.stream_address

        cap, frequency = stream.cap, stream.frequency
        if cap is None or frequency is None:
            cap = format_ether(await self._chain.read_contract_value(address, "cap"))
            frequency = int(await self._chain.read_contract_value(address, "frequency"))

        withdraw_logs: list[RawLog] = []
        deposit_logs: list[RawLog] = []
        if from_block <= to_block:
            withdraw_logs = await self.query_range(address, WITHDRAW_SIGNATURE, from_block, to_block)
            deposit_logs = await self.query_range(address, DEPOSIT_SIGNATURE, from_block, to_block)
        else:
            log.debug("Stream %s already at block %d, no log query", address, to_block)

        withdraws = await self._decode_all(withdraw_logs, EventKind.WITHDRAW, stream)

        last_contract = stream.last_contract
        if withdraws:
            last_contract = int(await self._chain.read_contract_value(address, "last"))

        deposits = await self._decode_all(deposit_logs, EventKind.DEPOSIT, stream)

        balance = format_ether(await self._chain.read_contract_value(address, BALANCE_SELECTOR))

        if withdraws or deposits:
            log.info(
                "Stream %s: %d withdraws, %d deposits in %d-%d",
                address, len(withdraws), len(deposits), from_block, to_block,
            )

        return StreamSnapshot(
            stream_address=address,
            last_contract=last_contract,
            cap=cap,
            frequency=frequency,
            last_indexed_block=to_block,
            balance=balance,
            events=[*withdraws, *deposits],
        )

    async def query_range(
        self,
        address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """Fetch logs over an inclusive range, windowed and split on RangeTooLarge."""
        full_window = self._max_block_range or (to_block - from_block + 1)
        window = full_window
        logs: list[RawLog] = []
        start = from_block

        while start <= to_block:
            end = min(start + window - 1, to_block)
            try:
                logs.extend(
                    await self._chain.query_logs(address, event_signature, start, end)
                )
            except RangeTooLarge:
                span = end - start + 1
                if span <= 1:
                    raise
                window = span // 2
                log.warning(
                    "Log range %d-%d too large for %s, retrying with %d blocks",
                    start, end, address, window,
                )
                continue
            start = end + 1
            # Grow back toward the configured window after a split
            window = min(window * 2, full_window)

        return logs

    async def _decode_all(
        self, logs: list[RawLog], kind: EventKind, stream: Stream
    ) -> list[StreamEvent]:
        if not logs:
            return []

        # Logs may span several blocks; fetch each block's timestamp once
        blocks = sorted({_block_of(raw) for raw in logs})
        stamps = await asyncio.gather(*(self._chain.block_timestamp(b) for b in blocks))
        seconds_by_block = dict(zip(blocks, stamps))

        builder = stream.builder_address if kind is EventKind.DEPOSIT else None
        return [
            self._decoder.decode(
                raw,
                kind,
                timestamp_ms=seconds_by_block[_block_of(raw)] * 1000,
                stream_address=stream.stream_address,
                builder_address=builder,
            )
            for raw in logs
        ]
