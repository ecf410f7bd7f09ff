"""
bunching.py - Bunch builder, proof service and periodic commit worker.

Build (at commit time):
  1. Fetch 2^depth block headers starting at start_block_number
  2. Reduce transaction roots -> transactions_mega_root
  3. Reduce receipt roots     -> receipts_mega_root
  4. Return the BunchHeader that gets published

Prove (at claim time):
  1. Re-fetch the bunch's headers from the side chain
  2. Emit the sibling path for the block's transaction root
  3. Check the rebuilt root against the committed one before handing it out

Worker (stub ledger / local operation):
  Every BUNCH_POLL_SECONDS, if the chain head has moved past the end of the
  next bunch, build it and append it to the ledger. A failed build appends
  nothing; the next tick retries from the same start block.
"""
import asyncio
import logging
import os
from typing import Optional

from .errors import SourceUnavailable
from .hashing import digest_hex, to_digest
from .ledger.adapter import BunchLedger
from .locator import leaf_index, locate_bunch
from .merkle import compute_proof, compute_root
from .proofs import proof_hex
from .schemas import BunchHeader, BunchRecord, ProofOut

log = logging.getLogger("checkpoint.bunching")

BUNCH_DEPTH = int(os.getenv("BUNCH_DEPTH", "4"))
BUNCH_POLL_SECONDS = int(os.getenv("BUNCH_POLL_SECONDS", "15"))
GENESIS_BLOCK_NUMBER = int(os.getenv("GENESIS_BLOCK_NUMBER", "0"))


async def build_bunch(source, start_block_number: int, bunch_depth: int) -> BunchHeader:
    """Fetch a bunch's blocks and compute both mega roots."""
    headers = await source.fetch_headers(start_block_number, 2 ** bunch_depth)
    tx_roots = [to_digest(h.transactions_root) for h in headers]
    receipt_roots = [to_digest(h.receipts_root) for h in headers]

    header = BunchHeader(
        start_block_number=start_block_number,
        bunch_depth=bunch_depth,
        transactions_mega_root=compute_root(tx_roots),
        receipts_mega_root=compute_root(receipt_roots),
    )
    log.info("built bunch start=%d depth=%d tx_root=%s",
             start_block_number, bunch_depth, header.transactions_mega_root[:18])
    return header


async def prove_block(source, record: BunchHeader, block_number: int) -> ProofOut:
    """Inclusion proof of block_number's transaction root in its bunch."""
    idx = leaf_index(record, block_number)
    tx_roots = await source.fetch_range(record.start_block_number, record.size)

    rebuilt = digest_hex(compute_root(tx_roots))
    if rebuilt != record.transactions_mega_root:
        # The node serves different blocks than the ones committed.
        raise SourceUnavailable(
            f"side chain does not match committed bunch: rebuilt={rebuilt[:18]} "
            f"committed={record.transactions_mega_root[:18]}")

    proof = compute_proof(tx_roots, idx)
    return ProofOut(
        block_number=block_number,
        bunch_index=getattr(record, "index", None),
        start_block_number=record.start_block_number,
        bunch_depth=record.bunch_depth,
        leaf_index=idx,
        transactions_root=digest_hex(tx_roots[idx]),
        proof=proof_hex(proof),
        transactions_mega_root=record.transactions_mega_root,
    )


async def locate_transaction(source, ledger: BunchLedger, tx_hash: str) -> Optional[int]:
    """Index of the bunch that committed the block containing tx_hash."""
    block_number = await source.block_number_of(tx_hash)
    return await asyncio.get_running_loop().run_in_executor(
        None, locate_bunch, ledger, block_number)


def next_start_block(ledger: BunchLedger) -> int:
    last = ledger.last_index()
    if last is None:
        return GENESIS_BLOCK_NUMBER
    return ledger.get(last).end_block_number


async def commit_next_bunch(source, ledger: BunchLedger, bunch_depth: int = BUNCH_DEPTH) -> Optional[BunchRecord]:
    """Build and append the next bunch if the chain is long enough."""
    start = next_start_block(ledger)
    end = start + 2 ** bunch_depth
    head = await source.head_block_number()
    if head < end - 1:
        log.debug("waiting for blocks: head=%d need=%d", head, end - 1)
        return None

    header = await build_bunch(source, start, bunch_depth)
    record = ledger.append(header)
    log.info("committed bunch=%d blocks=[%d, %d) root=%s",
             record.index, start, end, record.transactions_mega_root[:18])
    return record


async def bunch_worker(source, ledger: BunchLedger):
    """Main commit loop. Runs forever."""
    log.info("bunch worker started: depth=%d poll=%ds genesis=%d",
             BUNCH_DEPTH, BUNCH_POLL_SECONDS, GENESIS_BLOCK_NUMBER)
    while True:
        await asyncio.sleep(BUNCH_POLL_SECONDS)
        try:
            await commit_next_bunch(source, ledger)
        except Exception as exc:
            log.error("bunch worker error: %s", exc)
