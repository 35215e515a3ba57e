"""Stream records, sync snapshots and batch results."""

from __future__ import annotations

from dataclasses import dataclass, field

from stream_indexer.models.events import EventKind, StreamEvent


@dataclass
class Stream:
    """A tracked stream contract as persisted by the gateway."""

    stream_address: str
    builder_address: str
    cap: str | None = None  # decimal string, cached from chain
    frequency: int | None = None  # seconds, cached from chain
    last_indexed_block: int | None = None  # None = never synced
    last_contract: int | None = None  # on-chain withdraw counter
    balance: str | None = None  # from the last persisted snapshot

    @property
    def is_new(self) -> bool:
        return self.last_indexed_block is None


@dataclass
class StreamSnapshot:
    """Recomputed state of one stream as of ``last_indexed_block``.

    ``balance`` and ``last_contract`` are read at query time, so they reflect
    chain state after every event up to ``last_indexed_block``.
    """

    stream_address: str
    last_contract: int | None
    cap: str
    frequency: int
    last_indexed_block: int
    balance: str
    events: list[StreamEvent] = field(default_factory=list)  # withdraws, then deposits

    @property
    def has_events(self) -> bool:
        return bool(self.events)

    @property
    def withdraws(self) -> list[StreamEvent]:
        return [e for e in self.events if e.kind is EventKind.WITHDRAW]

    @property
    def deposits(self) -> list[StreamEvent]:
        return [e for e in self.events if e.kind is EventKind.DEPOSIT]


@dataclass
class StreamFailure:
    """A stream that could not be synced or persisted in a batch."""

    stream_address: str
    builder_address: str
    error: str


@dataclass
class BatchReport:
    """Summary of one batch run."""

    started_at: str
    completed_at: str = ""
    current_height: int = 0
    selected: int = 0
    updated: int = 0
    skipped: int = 0  # synced fine, nothing to persist
    failures: list[StreamFailure] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def failed(self) -> int:
        return len(self.failures)
