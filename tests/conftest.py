"""Shared fakes: an in-memory side chain standing in for a JSON-RPC node."""
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from checkpoint.app.errors import SourceUnavailable
from checkpoint.app.hashing import keccak256, to_digest
from checkpoint.app.schemas import BlockHeader


def tx_root(n: int) -> bytes:
    return keccak256(f"transactions-{n}".encode())


def receipts_root(n: int) -> bytes:
    return keccak256(f"receipts-{n}".encode())


class FakeChain:
    """Block source over deterministic synthetic headers."""

    def __init__(self, head: int = 63, missing=(), txs=None):
        self.head = head
        self.missing = set(missing)
        self.txs = dict(txs or {})
        self.fetched: list[int] = []

    async def fetch_headers(self, start: int, count: int) -> list[BlockHeader]:
        out = []
        for n in range(start, start + count):
            if n in self.missing or n > self.head:
                raise SourceUnavailable(f"block {n} not found")
            self.fetched.append(n)
            out.append(BlockHeader(block_number=n, transactions_root=tx_root(n),
                                   receipts_root=receipts_root(n)))
        return out

    async def fetch_range(self, start: int, count: int) -> list[bytes]:
        return [to_digest(h.transactions_root) for h in await self.fetch_headers(start, count)]

    async def head_block_number(self) -> int:
        return self.head

    async def block_number_of(self, tx_hash: str) -> int:
        if tx_hash not in self.txs:
            raise SourceUnavailable(f"transaction {tx_hash} not found")
        return self.txs[tx_hash]


@pytest.fixture
def chain():
    return FakeChain()
