"""Decoding raw Withdraw/Deposit logs into StreamEvents."""

from __future__ import annotations

import pytest

from stream_indexer.errors import DecodeError
from stream_indexer.models.events import EventKind

from tests.factories import (
    ACTOR_ADDRESS,
    BUILDER_ADDRESS,
    ONE_TOKEN,
    STREAM_ADDRESS,
    make_deposit_log,
    make_withdraw_log,
    tx_id,
)


def test_decode_withdraw(decoder):
    raw = make_withdraw_log(block=120, amount=ONE_TOKEN, reason="payout", log_index=3)

    event = decoder.decode(
        raw,
        EventKind.WITHDRAW,
        timestamp_ms=1_700_000_240_000,
        stream_address=STREAM_ADDRESS,
        builder_address=BUILDER_ADDRESS,
    )

    assert event.kind is EventKind.WITHDRAW
    assert event.actor_address == ACTOR_ADDRESS
    assert event.amount == "1.0"
    assert event.reason == "payout"
    assert event.source_block == 120
    assert event.transaction_id == tx_id(120, 3)
    assert event.log_index == 3
    assert event.timestamp == 1_700_000_240_000
    assert event.stream_address == STREAM_ADDRESS
    # Withdraws never carry the builder
    assert event.builder_address is None


def test_decode_deposit_carries_builder(decoder):
    raw = make_deposit_log(block=110, amount=25 * 10**16, reason="grant")

    event = decoder.decode(
        raw,
        EventKind.DEPOSIT,
        timestamp_ms=0,
        stream_address=STREAM_ADDRESS,
        builder_address=BUILDER_ADDRESS,
    )

    assert event.kind is EventKind.DEPOSIT
    assert event.amount == "0.25"
    assert event.reason == "grant"
    assert event.builder_address == BUILDER_ADDRESS
    assert event.to_payload()["builderAddress"] == BUILDER_ADDRESS


def test_decode_unicode_reason(decoder):
    raw = make_withdraw_log(reason="Sprint #4 ✅ done")
    event = decoder.decode(
        raw, EventKind.WITHDRAW, timestamp_ms=0, stream_address=STREAM_ADDRESS,
    )
    assert event.reason == "Sprint #4 ✅ done"


def test_decode_wrong_event_kind(decoder):
    """A Withdraw log decoded as a Deposit has the wrong topic."""
    raw = make_withdraw_log()
    with pytest.raises(DecodeError):
        decoder.decode(raw, EventKind.DEPOSIT, timestamp_ms=0, stream_address=STREAM_ADDRESS)


def test_decode_truncated_data(decoder):
    raw = make_withdraw_log()
    raw["data"] = b""
    with pytest.raises(DecodeError):
        decoder.decode(raw, EventKind.WITHDRAW, timestamp_ms=0, stream_address=STREAM_ADDRESS)


def test_decode_missing_indexed_topic(decoder):
    raw = make_withdraw_log()
    raw["topics"] = raw["topics"][:1]
    with pytest.raises(DecodeError):
        decoder.decode(raw, EventKind.WITHDRAW, timestamp_ms=0, stream_address=STREAM_ADDRESS)


def test_withdraw_payload_shape(decoder):
    raw = make_withdraw_log(block=130)
    event = decoder.decode(raw, EventKind.WITHDRAW, timestamp_ms=5, stream_address=STREAM_ADDRESS)
    assert event.to_payload() == {
        "userAddress": ACTOR_ADDRESS,
        "amount": "1.0",
        "reason": "payout",
        "block": 130,
        "tx": tx_id(130, 0),
        "streamAddress": STREAM_ADDRESS,
    }
