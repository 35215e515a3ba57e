"""Batch scheduler - sync a bounded batch of streams and commit the watermark."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from stream_indexer.errors import BatchAggregationError, StreamIndexerError
from stream_indexer.interfaces.chain import ChainClient
from stream_indexer.interfaces.gateway import PersistenceGateway
from stream_indexer.models.records import BatchReport, Stream, StreamFailure
from stream_indexer.sync.engine import StreamSyncEngine

log = logging.getLogger(__name__)

DEFAULT_MAX_STREAMS = 100

# Config key holding {"lastIndexedBlock": <height>} for the last completed batch
WATERMARK_KEY = "streams"


def coerce_max_streams(max_streams: object) -> int:
    """Batch size from user input; None, zero or junk fall back to the default."""
    try:
        n = int(max_streams)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_MAX_STREAMS
    return n if n > 0 else DEFAULT_MAX_STREAMS


class BatchScheduler:
    """Runs one sync batch across the streams the gateway marks as eligible.

    Each batch:
    1. Resolves the current chain height once (shared upper bound)
    2. Asks the gateway for up to ``max_streams`` eligible streams
    3. Syncs every stream concurrently; one stream's failure never cancels another
    4. Persists snapshots that carry events, or that initialize a new stream
    5. Advances the watermark to the current height once every stream resolved

    A failure outside a single stream's sync aborts the batch with
    BatchAggregationError and leaves the watermark untouched.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        chain: ChainClient,
        engine: StreamSyncEngine,
    ) -> None:
        self._gateway = gateway
        self._chain = chain
        self._engine = engine
        self.last_report: BatchReport | None = None

    async def run_batch(self, max_streams: int | None = DEFAULT_MAX_STREAMS) -> int:
        """Run one batch. Returns the number of stream snapshots persisted."""
        report = await self.run(max_streams)
        return report.updated

    async def run(self, max_streams: int | None = DEFAULT_MAX_STREAMS) -> BatchReport:
        """Run one batch and return its full report."""
        limit = coerce_max_streams(max_streams)
        report = BatchReport(started_at=datetime.now(timezone.utc).isoformat())
        start_time = time.monotonic()

        try:
            current_height = await self._chain.current_height()
        except Exception as exc:
            log.error("Could not resolve current block, batch aborted: %s", exc)
            raise BatchAggregationError(f"current block height unavailable: {exc}") from exc

        try:
            streams = await self._gateway.find_updatable_streams(limit)
        except Exception as exc:
            log.error("Could not load eligible streams, batch aborted: %s", exc)
            raise BatchAggregationError(f"eligible stream query failed: {exc}") from exc

        report.current_height = current_height
        report.selected = len(streams)
        log.info("Syncing %d streams up to block %d", len(streams), current_height)

        outcomes = await asyncio.gather(
            *(self._sync_one(stream, current_height) for stream in streams)
        )

        try:
            for outcome in outcomes:
                if isinstance(outcome, StreamFailure):
                    report.failures.append(outcome)
                elif outcome == "updated":
                    report.updated += 1
                else:
                    report.skipped += 1

            log.info("Updating stream lastIndexedBlock %d", current_height)
            await self._gateway.set_config_data(
                WATERMARK_KEY, {"lastIndexedBlock": current_height}
            )
        except Exception as exc:
            log.error("Error found. Not updating lastIndexedBlock: %s", exc)
            raise BatchAggregationError(f"batch commit failed: {exc}") from exc

        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        report.completed_at = datetime.now(timezone.utc).isoformat()
        self.last_report = report

        log.info(
            "Batch complete at block %d: %d selected, %d updated, %d unchanged, %d failed in %dms",
            current_height, report.selected, report.updated, report.skipped,
            report.failed, report.duration_ms,
        )
        return report

    async def _sync_one(self, stream: Stream, current_height: int) -> str | StreamFailure:
        """Sync and persist a single stream. Never raises."""
        from_block = (stream.last_indexed_block or 0) + 1

        try:
            snapshot = await self._engine.sync(stream, from_block, current_height)

            if snapshot.has_events:
                log.info(
                    "Updating stream data for %s (%d withdraws, %d deposits)",
                    stream.builder_address, len(snapshot.withdraws), len(snapshot.deposits),
                )
            elif stream.is_new:
                # First sync: persist even without events so balance/cap show up
                log.info("Updating NEW stream data for %s", stream.builder_address)
            else:
                return "skipped"

            await self._gateway.update_stream_data(stream, snapshot)
            return "updated"

        except StreamIndexerError as exc:
            log.error(
                "Stream sync failed for builder %s (%s): %s",
                stream.builder_address, stream.stream_address, exc,
            )
            return StreamFailure(
                stream_address=stream.stream_address,
                builder_address=stream.builder_address,
                error=f"{type(exc).__name__}: {exc}",
            )
        except Exception as exc:
            log.error(
                "Unexpected error syncing builder %s (%s): %s",
                stream.builder_address, stream.stream_address, exc,
                exc_info=True,
            )
            return StreamFailure(
                stream_address=stream.stream_address,
                builder_address=stream.builder_address,
                error=f"{type(exc).__name__}: {exc}",
            )
