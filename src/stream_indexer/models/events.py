"""Stream contract event models decoded from Deposit/Withdraw logs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EventKind(str, Enum):
    """Kind of stream event, valued as the event type stored downstream."""

    DEPOSIT = "stream.deposit"
    WITHDRAW = "stream.withdraw"


@dataclass(frozen=True)
class StreamEvent:
    """A single Deposit or Withdraw observed on a stream contract."""

    kind: EventKind
    timestamp: int  # ms since epoch (block timestamp * 1000)
    actor_address: str  # Deposit.from / Withdraw.to
    amount: str  # decimal string, 18-decimal scaled
    reason: str
    source_block: int
    transaction_id: str  # 0x-prefixed tx hash
    log_index: int
    stream_address: str
    builder_address: str | None = None  # deposits only, copied from the Stream

    def to_payload(self) -> dict:
        """Event payload in the shape stored alongside the event type."""
        payload = {
            "userAddress": self.actor_address,
            "amount": self.amount,
            "reason": self.reason,
            "block": self.source_block,
            "tx": self.transaction_id,
            "streamAddress": self.stream_address,
        }
        if self.kind is EventKind.DEPOSIT:
            payload["builderAddress"] = self.builder_address
        return payload
