"""SimpleStream contract ABI (events + read-only accessors)."""

from __future__ import annotations

from web3 import Web3

from stream_indexer.models.events import EventKind

DEPOSIT_SIGNATURE = "Deposit(address,uint256,string)"
WITHDRAW_SIGNATURE = "Withdraw(address,uint256,string)"

DEPOSIT_EVENT_ABI = {
    "anonymous": False,
    "type": "event",
    "name": "Deposit",
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "string", "name": "reason", "type": "string"},
    ],
}

WITHDRAW_EVENT_ABI = {
    "anonymous": False,
    "type": "event",
    "name": "Withdraw",
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "string", "name": "reason", "type": "string"},
    ],
}


def _view(name: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
    }


SIMPLE_STREAM_ABI = [
    DEPOSIT_EVENT_ABI,
    WITHDRAW_EVENT_ABI,
    _view("cap"),
    _view("frequency"),
    _view("last"),
]

# Read-only accessors exposed by the contract. "balance" is the native
# balance of the contract address, not a contract function.
CONTRACT_SELECTORS = ("cap", "frequency", "last")
BALANCE_SELECTOR = "balance"

EVENT_ABIS = {
    EventKind.DEPOSIT: DEPOSIT_EVENT_ABI,
    EventKind.WITHDRAW: WITHDRAW_EVENT_ABI,
}


def event_topic(signature: str) -> str:
    """0x-prefixed keccak topic for an event signature."""
    return Web3.to_hex(Web3.keccak(text=signature))
