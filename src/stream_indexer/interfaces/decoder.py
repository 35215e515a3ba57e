"""EventDecoder protocol - raw logs to typed stream events."""

from __future__ import annotations

from typing import Protocol

from stream_indexer.interfaces.chain import RawLog
from stream_indexer.models.events import EventKind, StreamEvent


class EventDecoder(Protocol):
    """Decodes Deposit/Withdraw logs. Pure: same input, same event."""

    def decode(
        self,
        raw_log: RawLog,
        kind: EventKind,
        *,
        timestamp_ms: int,
        stream_address: str,
        builder_address: str | None = None,
    ) -> StreamEvent:
        ...
