"""Tests for the JSON-RPC block source against a fake async web3."""
import asyncio

import pytest

from checkpoint.app.errors import SourceUnavailable
from checkpoint.app.source import BlockSource
from conftest import receipts_root, tx_root


class FakeEth:
    def __init__(self, head=31, missing=(), delays=None):
        self.head = head
        self.missing = set(missing)
        self.delays = delays or {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_block(self, number):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(number, 0))
            if number in self.missing:
                raise ValueError(f"Block with id: '{number}' not found.")
            return {"number": number,
                    "transactionsRoot": tx_root(number),
                    "receiptsRoot": receipts_root(number)}
        finally:
            self.in_flight -= 1

    async def get_transaction(self, tx_hash):
        if tx_hash == "0xpending":
            return {"blockNumber": None}
        return {"blockNumber": 17}

    @property
    def block_number(self):
        async def _head():
            return self.head
        return _head()


class FakeWeb3:
    def __init__(self, **kwargs):
        self.eth = FakeEth(**kwargs)


def test_headers_come_back_in_block_order_despite_completion_order():
    # earlier blocks finish last
    w3 = FakeWeb3(delays={n: (8 - n) * 0.001 for n in range(8)})
    headers = asyncio.run(BlockSource(w3=w3).fetch_headers(0, 8))
    assert [h.block_number for h in headers] == list(range(8))
    assert headers[5].transactions_root == "0x" + tx_root(5).hex()


def test_fetch_range_returns_raw_tx_roots():
    roots = asyncio.run(BlockSource(w3=FakeWeb3()).fetch_range(4, 4))
    assert roots == [tx_root(n) for n in range(4, 8)]


def test_single_missing_block_fails_whole_range():
    source = BlockSource(w3=FakeWeb3(missing={6}))
    with pytest.raises(SourceUnavailable):
        asyncio.run(source.fetch_range(0, 8))


def test_concurrency_is_bounded():
    w3 = FakeWeb3(delays={n: 0.001 for n in range(32)})
    asyncio.run(BlockSource(w3=w3, concurrency=4).fetch_headers(0, 32))
    assert w3.eth.max_in_flight <= 4


def test_invalid_range():
    with pytest.raises(ValueError):
        asyncio.run(BlockSource(w3=FakeWeb3()).fetch_headers(0, 0))


def test_head_and_transaction_lookup():
    source = BlockSource(w3=FakeWeb3(head=99))
    assert asyncio.run(source.head_block_number()) == 99
    assert asyncio.run(source.block_number_of("0xabc")) == 17
    with pytest.raises(SourceUnavailable):
        asyncio.run(source.block_number_of("0xpending"))


class CountingEth(FakeEth):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = 0

    async def get_block(self, number):
        self.calls += 1
        return await super().get_block(number)


def test_failed_range_stops_remaining_requests():
    w3 = FakeWeb3()
    w3.eth = CountingEth(head=63, missing={0}, delays={n: 0.02 for n in range(64)})
    source = BlockSource(w3=w3, concurrency=4)

    async def run():
        with pytest.raises(SourceUnavailable):
            await source.fetch_headers(0, 64)
        at_failure = w3.eth.calls
        await asyncio.sleep(0.2)
        return at_failure, w3.eth.calls

    at_failure, after_wait = asyncio.run(run())
    assert at_failure <= 8
    assert after_wait == at_failure
    assert w3.eth.in_flight == 0
