"""Indexer daemon - builds the component graph and runs batches periodically."""

from __future__ import annotations

import asyncio
import logging
import signal

from stream_indexer.chain.client import Web3ChainClient
from stream_indexer.chain.decoder import StreamEventDecoder
from stream_indexer.models.config import IndexerConfig
from stream_indexer.storage.sqlite import SQLitePersistenceGateway
from stream_indexer.sync.batch import BatchScheduler
from stream_indexer.sync.engine import StreamSyncEngine

log = logging.getLogger(__name__)


class IndexerDaemon:
    """Periodic stream indexer.

    Runs one batch at a time: a batch always completes (or fails) before the
    next one starts, so batches never overlap.
    """

    def __init__(self, cfg: IndexerConfig) -> None:
        self._cfg = cfg
        self._running = False
        self._stop_event = asyncio.Event()

        self.store = SQLitePersistenceGateway(cfg.db_path)
        self.chain = Web3ChainClient(cfg.rpc_url, request_timeout=cfg.request_timeout)
        self.decoder = StreamEventDecoder()
        self.engine = StreamSyncEngine(
            self.chain, self.decoder, max_block_range=cfg.max_block_range,
        )
        self.scheduler = BatchScheduler(self.store, self.chain, self.engine)

    async def start(self) -> None:
        """Initialize the store and run the batch loop until stopped."""
        log.info("Starting stream indexer")
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  DB: %s", self._cfg.db_path)
        log.info("  Max streams per batch: %d", self._cfg.max_streams)
        log.info("  Batch interval: %ds", self._cfg.batch_interval)

        await self.store.initialize()
        self._running = True

        try:
            await self._main_loop()
        finally:
            await self.chain.close()
            await self.store.close()
            log.info("Indexer shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop after the current batch."""
        log.info("Stop requested")
        self._running = False
        self._stop_event.set()

    async def run_once(self) -> int:
        """Run a single batch and return the number of streams updated."""
        return await self.scheduler.run_batch(self._cfg.max_streams)

    async def _main_loop(self) -> None:
        while self._running:
            delay = self._cfg.batch_interval
            try:
                updated = await self.run_once()
                log.info("Batch updated %d streams", updated)
            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Batch failed: %s", exc, exc_info=True)
                delay = self._cfg.error_backoff

            await self._sleep(delay)

    async def _sleep(self, seconds: int) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


async def run_daemon(cfg: IndexerConfig) -> None:
    """Entry point for running the daemon."""
    daemon = IndexerDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
