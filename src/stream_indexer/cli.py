"""CLI entry point for the stream indexer."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from web3 import Web3

from stream_indexer.config import load_config
from stream_indexer.daemon import IndexerDaemon, run_daemon
from stream_indexer.errors import StreamIndexerError
from stream_indexer.storage.sqlite import SQLitePersistenceGateway
from stream_indexer.sync.batch import WATERMARK_KEY


def _checksum(value: str, label: str) -> str:
    """Validate an address argument, exiting with an error if malformed."""
    if not Web3.is_address(value):
        click.echo(f"Error: {label} is not a valid address: {value}", err=True)
        sys.exit(1)
    return Web3.to_checksum_address(value)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """stream-indexer - sync SimpleStream contract events into a local database."""
    ctx.ensure_object(dict)
    cfg = load_config(config_path)
    ctx.obj["cfg"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Indexing ───────────────────────────────────────────


@cli.command("run-batch")
@click.option("--max-streams", type=int, default=None, help="Maximum streams to sync (default 100)")
@click.pass_context
def run_batch(ctx: click.Context, max_streams: int | None) -> None:
    """Sync one batch of streams and advance the watermark."""
    cfg = ctx.obj["cfg"]

    async def _run() -> None:
        daemon = IndexerDaemon(cfg)
        await daemon.store.initialize()
        try:
            updated = await daemon.scheduler.run_batch(max_streams or cfg.max_streams)
        finally:
            await daemon.chain.close()
            await daemon.store.close()

        report = daemon.scheduler.last_report
        click.echo(f"Updated {updated} streams")
        if report is not None:
            click.echo(f"  Block:     {report.current_height}")
            click.echo(f"  Selected:  {report.selected}")
            click.echo(f"  Unchanged: {report.skipped}")
            click.echo(f"  Failed:    {report.failed}")
            for failure in report.failures:
                click.echo(f"    {failure.builder_address} ({failure.stream_address}): {failure.error}")

    try:
        asyncio.run(_run())
    except StreamIndexerError as exc:
        click.echo(f"Batch failed: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Run batches continuously until interrupted."""
    cfg = ctx.obj["cfg"]
    click.echo(f"Starting stream indexer (every {cfg.batch_interval}s)")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and the stored watermark."""
    cfg = ctx.obj["cfg"]

    async def _watermark():
        store = SQLitePersistenceGateway(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_config_data(WATERMARK_KEY)
        finally:
            await store.close()

    watermark = asyncio.run(_watermark()) or {}
    click.echo(f"RPC URL:        {cfg.rpc_url}")
    click.echo(f"DB path:        {cfg.db_path}")
    click.echo(f"Max streams:    {cfg.max_streams}")
    click.echo(f"Max range:      {cfg.max_block_range or 'unbounded'}")
    click.echo(f"Batch interval: {cfg.batch_interval}s")
    click.echo(f"Last batch at:  block {watermark.get('lastIndexedBlock', '(never)')}")


# ── Streams ────────────────────────────────────────────


@cli.command("add-stream")
@click.argument("stream_address")
@click.argument("builder_address")
@click.pass_context
def add_stream(ctx: click.Context, stream_address: str, builder_address: str) -> None:
    """Track a stream contract owned by a builder."""
    cfg = ctx.obj["cfg"]
    stream_address = _checksum(stream_address, "stream address")
    builder_address = _checksum(builder_address, "builder address")

    async def _add() -> bool:
        store = SQLitePersistenceGateway(cfg.db_path)
        await store.initialize()
        try:
            return await store.add_stream(stream_address, builder_address)
        finally:
            await store.close()

    if asyncio.run(_add()):
        click.echo(f"Tracking stream {stream_address} for {builder_address}")
    else:
        click.echo(f"Stream {stream_address} is already tracked")


@cli.command()
@click.pass_context
def streams(ctx: click.Context) -> None:
    """List tracked streams."""
    cfg = ctx.obj["cfg"]

    async def _list():
        store = SQLitePersistenceGateway(cfg.db_path)
        await store.initialize()
        try:
            return await store.list_streams()
        finally:
            await store.close()

    rows = asyncio.run(_list())
    if not rows:
        click.echo("No streams tracked.")
        return

    for s in rows:
        block = s.last_indexed_block if s.last_indexed_block is not None else "never"
        click.echo(
            f"{s.stream_address}  builder={s.builder_address}  block={block}"
            f"  balance={s.balance or '-'}  cap={s.cap or '-'}  frequency={s.frequency or '-'}"
        )


@cli.command()
@click.argument("stream_address")
@click.pass_context
def events(ctx: click.Context, stream_address: str) -> None:
    """Show stored deposit/withdraw events of a stream, one JSON payload per line."""
    cfg = ctx.obj["cfg"]
    stream_address = _checksum(stream_address, "stream address")

    async def _events():
        store = SQLitePersistenceGateway(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_stream_events(stream_address)
        finally:
            await store.close()

    rows = asyncio.run(_events())
    if not rows:
        click.echo("No events stored.")
        return

    for event in rows:
        click.echo(f"{event.kind.value}  {json.dumps(event.to_payload())}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
