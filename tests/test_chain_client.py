"""Web3ChainClient error mapping and request shapes against a fake AsyncWeb3."""

from __future__ import annotations

import aiohttp
import pytest

from stream_indexer.chain.abi import WITHDRAW_SIGNATURE, event_topic
from stream_indexer.chain.client import Web3ChainClient, is_range_limit_error
from stream_indexer.errors import ContractCallFailed, RangeTooLarge, RpcUnavailable

from tests.factories import STREAM_ADDRESS, make_withdraw_log


class FakeCall:
    def __init__(self, result):
        self._result = result

    async def call(self):
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class FakeFunctions:
    def __init__(self, results: dict):
        self._results = results

    def __getattr__(self, name):
        return lambda: FakeCall(self._results[name])


class FakeContract:
    def __init__(self, results: dict):
        self.functions = FakeFunctions(results)


class FakeEth:
    def __init__(self):
        self.height: int | Exception = 150
        self.logs: list | Exception = []
        self.blocks: dict = {}
        self.balance: int | Exception = 3 * 10**18
        self.results: dict = {"cap": 5 * 10**17, "frequency": 2_592_000, "last": 8}
        self.get_logs_params: list[dict] = []
        self.contract_addresses: list[str] = []

    @property
    def block_number(self):
        return self._block_number()

    async def _block_number(self):
        if isinstance(self.height, Exception):
            raise self.height
        return self.height

    async def get_logs(self, params):
        self.get_logs_params.append(params)
        if isinstance(self.logs, Exception):
            raise self.logs
        return self.logs

    async def get_block(self, number):
        if number not in self.blocks:
            raise ValueError(f"Block with id: {number} not found.")
        return self.blocks[number]

    async def get_balance(self, address):
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance

    def contract(self, address, abi):
        self.contract_addresses.append(address)
        return FakeContract(self.results)


class FakeProvider:
    def __init__(self):
        self.disconnected = False

    async def disconnect(self):
        self.disconnected = True


class FakeWeb3:
    def __init__(self):
        self.eth = FakeEth()
        self.provider = FakeProvider()


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def client(w3):
    return Web3ChainClient(w3=w3)


def test_rpc_url_required():
    with pytest.raises(ValueError):
        Web3ChainClient()


def test_builds_http_provider():
    client = Web3ChainClient("http://127.0.0.1:8545", request_timeout=5)
    assert client._w3.provider.endpoint_uri == "http://127.0.0.1:8545"


# ── Height and blocks ─────────────────────────────────────────────


async def test_current_height(client):
    assert await client.current_height() == 150


async def test_current_height_unavailable(client, w3):
    w3.eth.height = aiohttp.ClientConnectionError("refused")
    with pytest.raises(RpcUnavailable):
        await client.current_height()


async def test_block_timestamp(client, w3):
    w3.eth.blocks[120] = {"number": 120, "timestamp": 1_700_000_240}
    assert await client.block_timestamp(120) == 1_700_000_240


async def test_block_timestamp_unknown_block(client):
    with pytest.raises(RpcUnavailable):
        await client.block_timestamp(999)


# ── Logs ──────────────────────────────────────────────────────────


async def test_query_logs_request_shape(client, w3):
    raw = make_withdraw_log()
    w3.eth.logs = [raw]

    logs = await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 101, 150)

    assert logs == [raw]
    assert w3.eth.get_logs_params == [{
        "address": STREAM_ADDRESS,
        "topics": [event_topic(WITHDRAW_SIGNATURE)],
        "fromBlock": 101,
        "toBlock": 150,
    }]


async def test_query_logs_empty_range_skips_rpc(client, w3):
    assert await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 151, 150) == []
    assert w3.eth.get_logs_params == []


async def test_query_logs_range_limit(client, w3):
    w3.eth.logs = ValueError({"code": -32005, "message": "query returned more than 10000 results"})

    with pytest.raises(RangeTooLarge) as exc_info:
        await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 1, 1_000_000)

    assert exc_info.value.from_block == 1
    assert exc_info.value.to_block == 1_000_000


async def test_query_logs_transport_failure(client, w3):
    w3.eth.logs = aiohttp.ClientConnectionError("connection reset")
    with pytest.raises(RpcUnavailable):
        await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 1, 10)


@pytest.mark.parametrize(
    "message,expected",
    [
        ("exceed maximum block range: 50000", True),
        ("Log response size exceeded.", True),
        ("eth_getLogs is limited to a 10,000 block range", True),
        ("connection refused", False),
        ("429, message='Too Many Requests', url='http://127.0.0.1:8545'", False),
        ("daily request rate limit exceeded", False),
    ],
)
def test_is_range_limit_error(message, expected):
    assert is_range_limit_error(Exception(message)) is expected


# ── Contract values ───────────────────────────────────────────────


async def test_read_contract_values(client, w3):
    assert await client.read_contract_value(STREAM_ADDRESS, "cap") == 5 * 10**17
    assert await client.read_contract_value(STREAM_ADDRESS, "frequency") == 2_592_000
    assert await client.read_contract_value(STREAM_ADDRESS, "last") == 8
    assert w3.eth.contract_addresses == [STREAM_ADDRESS] * 3


async def test_read_balance(client, w3):
    assert await client.read_contract_value(STREAM_ADDRESS, "balance") == 3 * 10**18
    assert w3.eth.contract_addresses == []


async def test_unknown_selector(client):
    with pytest.raises(ContractCallFailed, match="unknown"):
        await client.read_contract_value(STREAM_ADDRESS, "owner")


async def test_contract_revert(client, w3):
    w3.eth.results["cap"] = ValueError("execution reverted")
    with pytest.raises(ContractCallFailed):
        await client.read_contract_value(STREAM_ADDRESS, "cap")


async def test_contract_read_transport_failure(client, w3):
    w3.eth.balance = aiohttp.ServerTimeoutError("timed out")
    with pytest.raises(RpcUnavailable):
        await client.read_contract_value(STREAM_ADDRESS, "balance")


async def test_close_disconnects_provider(client, w3):
    await client.close()
    assert w3.provider.disconnected


async def test_query_logs_throttled_is_unavailable(client, w3):
    """A 429 from the node is not retried as a smaller range."""
    w3.eth.logs = Exception("429, message='Too Many Requests', url='http://127.0.0.1:8545'")
    with pytest.raises(RpcUnavailable):
        await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 1, 1024)
    assert len(w3.eth.get_logs_params) == 1


async def test_query_logs_transport_error_never_range_limit(client, w3):
    w3.eth.logs = aiohttp.ClientConnectionError("block range request dropped")
    with pytest.raises(RpcUnavailable):
        await client.query_logs(STREAM_ADDRESS, WITHDRAW_SIGNATURE, 1, 1024)
