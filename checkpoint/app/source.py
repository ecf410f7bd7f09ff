"""
source.py - Block header source over JSON-RPC (web3.py, async).

Supplies the leaves of a bunch: one transactions root (and receipts root)
per block, for a contiguous block range.

Fetch model:
  All 2^depth requests are issued at once (bounded by FETCH_CONCURRENCY)
  and complete in any order. Each result lands in its own slot, so no
  locking is needed. The range is returned only when every slot is filled;
  a single failed block fails the whole range with SourceUnavailable.
  Retrying is left to the caller.

Environment variables:
  ESN_RPC            - JSON-RPC endpoint of the side chain (default: ESN node)
  FETCH_CONCURRENCY  - max in-flight block requests (default: 64)
"""
import asyncio
import logging
import os
from typing import Optional

from .errors import SourceUnavailable
from .hashing import to_digest
from .schemas import BlockHeader

log = logging.getLogger("checkpoint.source")

ESN_RPC = os.getenv("ESN_RPC", "http://13.127.185.136:80")
FETCH_CONCURRENCY = int(os.getenv("FETCH_CONCURRENCY", "64"))


class BlockSource:
    """Async block-header fetcher for one side-chain node."""

    def __init__(self, rpc_url: str = ESN_RPC, concurrency: int = FETCH_CONCURRENCY, w3=None):
        self.rpc_url = rpc_url
        self.concurrency = max(1, concurrency)
        self._w3 = w3

    def _web3(self):
        if self._w3 is None:
            from web3 import AsyncHTTPProvider, AsyncWeb3
            from web3.middleware import ExtraDataToPOAMiddleware

            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
            self._w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            log.info("block source connected: rpc=%s", self.rpc_url)
        return self._w3

    async def _get_header(self, number: int, sem: asyncio.Semaphore) -> BlockHeader:
        async with sem:
            try:
                block = await self._web3().eth.get_block(number)
            except Exception as exc:
                raise SourceUnavailable(f"block {number}: {exc}") from exc
        if block is None:
            raise SourceUnavailable(f"block {number} not found")
        log.debug("received block %d", number)
        return BlockHeader(
            block_number=number,
            transactions_root=bytes(block["transactionsRoot"]),
            receipts_root=bytes(block["receiptsRoot"]),
        )

    async def fetch_headers(self, start: int, count: int) -> list[BlockHeader]:
        """Return headers for blocks [start, start + count) in block order."""
        if start < 0 or count < 1:
            raise ValueError(f"invalid block range start={start} count={count}")

        sem = asyncio.Semaphore(self.concurrency)
        slots: list[Optional[BlockHeader]] = [None] * count

        async def fill(offset: int):
            slots[offset] = await self._get_header(start + offset, sem)

        tasks = [asyncio.ensure_future(fill(i)) for i in range(count)]
        try:
            await asyncio.gather(*tasks)
        except SourceUnavailable as exc:
            log.error("range fetch failed start=%d count=%d: %s", start, count, exc)
            raise
        finally:
            # first failure (or caller cancellation) stops every request still queued
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        log.info("fetched %d block headers from %d", count, start)
        return slots

    async def fetch_range(self, start: int, count: int) -> list[bytes]:
        """Transaction roots of blocks [start, start + count), as raw digests."""
        headers = await self.fetch_headers(start, count)
        return [to_digest(h.transactions_root) for h in headers]

    async def head_block_number(self) -> int:
        try:
            return int(await self._web3().eth.block_number)
        except Exception as exc:
            raise SourceUnavailable(f"cannot read chain head: {exc}") from exc

    async def block_number_of(self, tx_hash: str) -> int:
        """Block number that mined tx_hash."""
        try:
            tx = await self._web3().eth.get_transaction(tx_hash)
        except Exception as exc:
            raise SourceUnavailable(f"transaction {tx_hash}: {exc}") from exc
        number = tx.get("blockNumber") if tx else None
        if number is None:
            raise SourceUnavailable(f"transaction {tx_hash} is not mined")
        return int(number)
