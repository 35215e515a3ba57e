"""PersistenceGateway protocol - narrow storage interface consumed by the indexer."""

from __future__ import annotations

from typing import Any, Protocol

from stream_indexer.models.records import Stream, StreamSnapshot


class PersistenceGateway(Protocol):
    """Stream selection, snapshot writes and named config values."""

    async def find_updatable_streams(self, limit: int) -> list[Stream]:
        """Up to ``limit`` streams due for a sync attempt."""
        ...

    async def update_stream_data(self, stream: Stream, snapshot: StreamSnapshot) -> None:
        """Persist a snapshot. Raises PersistenceError on failure."""
        ...

    async def set_config_data(self, key: str, value: Any) -> None:
        ...

    async def get_config_data(self, key: str) -> Any | None:
        ...
