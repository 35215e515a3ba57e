"""Shared fixtures for stream_indexer tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from stream_indexer.chain.decoder import StreamEventDecoder
from stream_indexer.models.config import IndexerConfig
from stream_indexer.storage.sqlite import SQLitePersistenceGateway
from stream_indexer.sync.batch import BatchScheduler
from stream_indexer.sync.engine import StreamSyncEngine

from tests.factories import BUILDER_ADDRESS, STREAM_ADDRESS
from tests.mocks import MockChainClient, MockGateway

RPC_URL = "http://127.0.0.1:8545"


def pytest_configure(config):
    """Add indexer context to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["RPC"] = RPC_URL
    meta["Stream Contract"] = STREAM_ADDRESS
    meta["Builder Account"] = BUILDER_ADDRESS


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        max_streams=100,
        batch_interval=1,
        error_backoff=1,
        rpc_url=RPC_URL,
        request_timeout=5,
        max_block_range=0,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return IndexerConfig(**defaults)


@pytest.fixture
async def store():
    """Initialized in-memory SQLitePersistenceGateway."""
    s = SQLitePersistenceGateway(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_chain():
    return MockChainClient(height=150)


@pytest.fixture
def mock_gateway():
    return MockGateway()


@pytest.fixture
def decoder():
    return StreamEventDecoder()


@pytest.fixture
def engine(mock_chain, decoder):
    return StreamSyncEngine(mock_chain, decoder)


@pytest.fixture
def scheduler(mock_gateway, mock_chain, engine):
    """BatchScheduler over the mock gateway and mock chain."""
    return BatchScheduler(mock_gateway, mock_chain, engine)


@pytest.fixture
def sqlite_scheduler(store, mock_chain, engine):
    """BatchScheduler over a real in-memory SQLite gateway."""
    return BatchScheduler(store, mock_chain, engine)
