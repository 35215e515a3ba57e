"""SQLite implementation of the PersistenceGateway protocol."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from stream_indexer.errors import PersistenceError
from stream_indexer.models.events import EventKind, StreamEvent
from stream_indexer.models.records import Stream, StreamSnapshot

SCHEMA = """
-- Tracked stream contracts
CREATE TABLE IF NOT EXISTS streams (
    stream_address TEXT PRIMARY KEY,
    builder_address TEXT NOT NULL,
    cap TEXT,
    frequency INTEGER,
    last_indexed_block INTEGER,
    last_contract INTEGER,
    balance TEXT,
    selected_at TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_streams_selected ON streams(selected_at);
CREATE INDEX IF NOT EXISTS idx_streams_builder ON streams(builder_address);

-- Deposit/withdraw events folded in from snapshots
CREATE TABLE IF NOT EXISTS stream_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stream_address TEXT NOT NULL,
    event_type TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    actor_address TEXT NOT NULL,
    builder_address TEXT,
    amount TEXT NOT NULL,
    reason TEXT NOT NULL,
    block INTEGER NOT NULL,
    tx_hash TEXT NOT NULL,
    log_index INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (stream_address, tx_hash, log_index)
);
CREATE INDEX IF NOT EXISTS idx_stream_events_stream ON stream_events(stream_address, block);

-- Named config values (JSON)
CREATE TABLE IF NOT EXISTS config_data (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_stream(row: aiosqlite.Row) -> Stream:
    return Stream(
        stream_address=row["stream_address"],
        builder_address=row["builder_address"],
        cap=row["cap"],
        frequency=row["frequency"],
        last_indexed_block=row["last_indexed_block"],
        last_contract=row["last_contract"],
        balance=row["balance"],
    )


class SQLitePersistenceGateway:
    """SQLite-backed implementation of the PersistenceGateway protocol.

    Eligible streams rotate: ``find_updatable_streams`` returns the least
    recently selected streams first and stamps them as selected.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        # Concurrent stream tasks share one connection; transactions must not interleave
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Streams ────────────────────────────────────────────

    async def add_stream(self, stream_address: str, builder_address: str) -> bool:
        """Register a stream. Returns False if it was already tracked."""
        async with self._write_lock:
            cur = await self.db.execute(
                "INSERT INTO streams (stream_address, builder_address, created_at, updated_at)"
                " VALUES (?, ?, ?, ?) ON CONFLICT(stream_address) DO NOTHING",
                (stream_address, builder_address, _now(), _now()),
            )
            await self.db.commit()
            return cur.rowcount > 0

    async def get_stream(self, stream_address: str) -> Stream | None:
        async with self.db.execute(
            "SELECT * FROM streams WHERE stream_address=?", (stream_address,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_stream(row) if row else None

    async def list_streams(self) -> list[Stream]:
        async with self.db.execute(
            "SELECT * FROM streams ORDER BY created_at, stream_address"
        ) as cur:
            rows = await cur.fetchall()
            return [_row_to_stream(r) for r in rows]

    async def find_updatable_streams(self, limit: int) -> list[Stream]:
        async with self.db.execute(
            "SELECT * FROM streams"
            " ORDER BY selected_at IS NOT NULL, selected_at, rowid"
            " LIMIT ?",
            (limit,),
        ) as cur:
            rows = await cur.fetchall()

        streams = [_row_to_stream(r) for r in rows]
        if streams:
            now = _now()
            async with self._write_lock:
                await self.db.executemany(
                    "UPDATE streams SET selected_at=? WHERE stream_address=?",
                    [(now, s.stream_address) for s in streams],
                )
                await self.db.commit()
        return streams

    async def update_stream_data(self, stream: Stream, snapshot: StreamSnapshot) -> None:
        """Write the snapshot fields and its events in one transaction.

        Rejects snapshots that would move ``last_indexed_block`` backwards.
        Events already stored (same tx hash and log index) are left as is.
        """
        async with self._write_lock:
            await self._write_snapshot(stream.stream_address, snapshot)

    async def _write_snapshot(self, address: str, snapshot: StreamSnapshot) -> None:
        try:
            async with self.db.execute(
                "SELECT last_indexed_block FROM streams WHERE stream_address=?", (address,)
            ) as cur:
                row = await cur.fetchone()
            if row is None:
                raise PersistenceError(f"unknown stream {address}")

            stored = row["last_indexed_block"]
            if stored is not None and snapshot.last_indexed_block < stored:
                raise PersistenceError(
                    f"stream {address}: snapshot block {snapshot.last_indexed_block}"
                    f" is behind stored block {stored}"
                )

            await self.db.execute(
                "UPDATE streams SET cap=?, frequency=?, last_contract=?, balance=?,"
                " last_indexed_block=?, updated_at=? WHERE stream_address=?",
                (
                    snapshot.cap,
                    snapshot.frequency,
                    snapshot.last_contract,
                    snapshot.balance,
                    snapshot.last_indexed_block,
                    _now(),
                    address,
                ),
            )
            await self.db.executemany(
                "INSERT OR IGNORE INTO stream_events"
                " (stream_address, event_type, timestamp, actor_address, builder_address,"
                "  amount, reason, block, tx_hash, log_index)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        e.stream_address,
                        e.kind.value,
                        e.timestamp,
                        e.actor_address,
                        e.builder_address,
                        e.amount,
                        e.reason,
                        e.source_block,
                        e.transaction_id,
                        e.log_index,
                    )
                    for e in snapshot.events
                ],
            )
            await self.db.commit()
        except PersistenceError:
            await self.db.rollback()
            raise
        except sqlite3.Error as exc:
            await self.db.rollback()
            raise PersistenceError(f"stream {address} update failed: {exc}") from exc

    async def get_stream_events(self, stream_address: str) -> list[StreamEvent]:
        async with self.db.execute(
            "SELECT * FROM stream_events WHERE stream_address=? ORDER BY id",
            (stream_address,),
        ) as cur:
            rows = await cur.fetchall()
            return [
                StreamEvent(
                    kind=EventKind(r["event_type"]),
                    timestamp=r["timestamp"],
                    actor_address=r["actor_address"],
                    amount=r["amount"],
                    reason=r["reason"],
                    source_block=r["block"],
                    transaction_id=r["tx_hash"],
                    log_index=r["log_index"],
                    stream_address=r["stream_address"],
                    builder_address=r["builder_address"],
                )
                for r in rows
            ]

    # ── Config values ──────────────────────────────────────

    async def set_config_data(self, key: str, value: Any) -> None:
        async with self._write_lock:
            try:
                await self.db.execute(
                    "INSERT INTO config_data (key, value, updated_at) VALUES (?, ?, ?)"
                    " ON CONFLICT(key) DO UPDATE SET value=excluded.value,"
                    " updated_at=excluded.updated_at",
                    (key, json.dumps(value), _now()),
                )
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise PersistenceError(f"config {key!r} write failed: {exc}") from exc

    async def get_config_data(self, key: str) -> Any | None:
        async with self.db.execute(
            "SELECT value FROM config_data WHERE key=?", (key,)
        ) as cur:
            row = await cur.fetchone()
            return json.loads(row["value"]) if row else None
