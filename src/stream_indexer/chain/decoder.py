"""Decode SimpleStream Deposit/Withdraw logs into StreamEvents."""

from __future__ import annotations

from eth_abi.abi import default_codec
from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import LogTopicError, MismatchedABI

from stream_indexer.chain.abi import EVENT_ABIS
from stream_indexer.chain.units import format_ether
from stream_indexer.errors import DecodeError
from stream_indexer.interfaces.chain import RawLog
from stream_indexer.models.events import EventKind, StreamEvent

# Indexed actor argument per event: Deposit(from, ...) / Withdraw(to, ...)
_ACTOR_ARG = {
    EventKind.DEPOSIT: "from",
    EventKind.WITHDRAW: "to",
}


class StreamEventDecoder:
    """Decodes raw logs against the SimpleStream event ABI.

    Stateless apart from the ABI codec, so one instance is shared by every
    concurrent stream sync.
    """

    def __init__(self, codec=default_codec) -> None:
        self._codec = codec

    def decode(
        self,
        raw_log: RawLog,
        kind: EventKind,
        *,
        timestamp_ms: int,
        stream_address: str,
        builder_address: str | None = None,
    ) -> StreamEvent:
        try:
            data = get_event_data(self._codec, EVENT_ABIS[kind], raw_log)
            args = data["args"]
            actor = Web3.to_checksum_address(args[_ACTOR_ARG[kind]])
            amount = int(args["amount"])
            reason = args["reason"]
            block = int(raw_log["blockNumber"])
            tx = Web3.to_hex(raw_log["transactionHash"])
            log_index = int(raw_log["logIndex"])
        except (
            MismatchedABI, LogTopicError, DecodingError, KeyError, IndexError, TypeError, ValueError,
        ) as exc:
            raise DecodeError(
                f"cannot decode {kind.value} log {raw_log.get('transactionHash')!r}: {exc}"
            ) from exc

        return StreamEvent(
            kind=kind,
            timestamp=timestamp_ms,
            actor_address=actor,
            amount=format_ether(amount),
            reason=reason,
            source_block=block,
            transaction_id=tx,
            log_index=log_index,
            stream_address=stream_address,
            builder_address=builder_address if kind is EventKind.DEPOSIT else None,
        )
