"""
main.py - Checkpoint Gateway REST API.

Architecture position: this process sits between the side chain and the
parties that rely on its published bunch roots.
  side chain blocks → bunch builder → mega root → ledger (PlasmaManager / stub)
  relayer → GET /proof/{block} → claim on parent chain → POST /verify

Role enforcement: only VALIDATOR may force a bunch commit.
Proof and verify endpoints require RELAYER or VALIDATOR.
"""
import asyncio
import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .bunching import (
    BUNCH_DEPTH, bunch_worker, commit_next_bunch, locate_transaction, prove_block,
)
from .errors import IndexOutOfRange, InvalidLeafCount, MalformedProof, SourceUnavailable
from .ledger.adapter import BACKEND, LedgerError, get_ledger
from .locator import BUNCH_RANGE_INCLUSIVE, leaf_index, locate_bunch
from .proofs import verify_tx_root
from .roles import PERMISSIONS, require
from .schemas import LocateResult, ProofOut, SCHEMA_VERSION, VerifyIn, VerifyResult
from .source import BlockSource

log = logging.getLogger("checkpoint.gateway")

BUNCH_WORKER_ENABLED = os.getenv("BUNCH_WORKER_ENABLED", "0").lower() in ("1", "true", "yes")

app = FastAPI(
    title="Checkpoint Gateway",
    description=(
        "Bunch roots for side-chain checkpointing.\n\n"
        "**Flow**: blocks → Merkle bunch → mega root on ledger → inclusion proofs\n\n"
        "**Roles** (X-Role header): `validator` | `relayer` | `observer`"
    ),
    version=SCHEMA_VERSION,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"],
                   allow_methods=["*"], allow_headers=["*"])

_source = None


def get_source():
    global _source
    if _source is None:
        _source = BlockSource()
    return _source


async def _read(fn, *args):
    """Run a blocking ledger read off the event loop."""
    return await asyncio.get_running_loop().run_in_executor(None, fn, *args)


async def _record_or_404(ledger, index: int):
    last = await _read(ledger.last_index)
    if last is None or not 0 <= index <= last:
        raise HTTPException(404, detail=f"Bunch {index} not found")
    return await _read(ledger.get, index)


#  Error mapping

@app.exception_handler(SourceUnavailable)
async def source_unavailable_handler(request, exc: SourceUnavailable):
    log.error("upstream failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"error": "source_unavailable", "detail": str(exc)})


async def _bad_input(request, exc):
    return JSONResponse(status_code=400, content={"error": type(exc).__name__, "detail": str(exc)})


for _exc in (IndexOutOfRange, InvalidLeafCount, MalformedProof):
    app.add_exception_handler(_exc, _bad_input)


#  Startup

@app.on_event("startup")
async def startup():
    if BUNCH_WORKER_ENABLED:
        asyncio.create_task(bunch_worker(get_source(), get_ledger()))
    log.info("Checkpoint Gateway started - backend=%s depth=%d inclusive=%s",
             BACKEND, BUNCH_DEPTH, BUNCH_RANGE_INCLUSIVE)


#  System endpoints

@app.get("/health", tags=["system"])
async def health():
    return {
        "status": "ok",
        "schema_version": SCHEMA_VERSION,
        "ledger_backend": BACKEND,
        "bunch_depth": BUNCH_DEPTH,
        "range_inclusive": BUNCH_RANGE_INCLUSIVE,
        "worker_enabled": BUNCH_WORKER_ENABLED,
    }


@app.get("/roles", tags=["system"])
async def list_roles():
    return {r.value: sorted(p) for r, p in PERMISSIONS.items()}


#  Bunch queries

@app.get("/bunches", tags=["bunches"],
         dependencies=[Depends(require("read_bunches"))])
async def list_bunches(
    limit:  int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ledger=Depends(get_ledger),
):
    last = await _read(ledger.last_index)
    if last is None:
        return []
    stop = min(last + 1, offset + limit)
    return [await _read(ledger.get, i) for i in range(offset, stop)]


@app.get("/bunches/{index}", tags=["bunches"],
         dependencies=[Depends(require("read_bunches"))])
async def get_bunch(index: int, ledger=Depends(get_ledger)):
    return await _record_or_404(ledger, index)


@app.post("/bunches/close", tags=["bunches"], status_code=202,
          dependencies=[Depends(require("commit_bunch"))])
async def force_commit_bunch(ledger=Depends(get_ledger), source=Depends(get_source)):
    """Commit the next bunch now instead of waiting for the worker tick."""
    try:
        record = await commit_next_bunch(source, ledger)
    except LedgerError as exc:
        raise HTTPException(409, detail=str(exc))
    if record is None:
        return {"status": "waiting", "detail": "not enough blocks for the next bunch"}
    return {"status": "committed", "bunch": record}


#  Location

@app.get("/locate/block/{block_number}", tags=["locate"], response_model=LocateResult,
         dependencies=[Depends(require("locate"))])
async def locate_block(block_number: int, ledger=Depends(get_ledger)):
    index = await _read(locate_bunch, ledger, block_number)
    if index is None:
        return LocateResult(block_number=block_number)
    record = await _read(ledger.get, index)
    idx = block_number - record.start_block_number
    # inclusive ranges can match one past the last leaf
    return LocateResult(block_number=block_number, bunch_index=index,
                        leaf_index=idx if idx < record.size else None, found=True)


@app.get("/locate/tx/{tx_hash}", tags=["locate"],
         dependencies=[Depends(require("locate"))])
async def locate_tx(tx_hash: str, ledger=Depends(get_ledger), source=Depends(get_source)):
    index = await locate_transaction(source, ledger, tx_hash)
    return {"tx_hash": tx_hash, "bunch_index": index, "found": index is not None}


#  Proofs

@app.get("/proof/{block_number}", tags=["integrity"], response_model=ProofOut,
         dependencies=[Depends(require("prove_block"))])
async def get_proof(block_number: int, ledger=Depends(get_ledger), source=Depends(get_source)):
    """Inclusion proof of a block's transaction root in its committed bunch."""
    index = await _read(locate_bunch, ledger, block_number, False)
    if index is None:
        raise HTTPException(404, detail=f"Block {block_number} is not in any committed bunch")
    record = await _read(ledger.get, index)
    return await prove_block(source, record, block_number)


@app.post("/verify", tags=["integrity"], response_model=VerifyResult,
          dependencies=[Depends(require("verify_proof"))])
async def verify(body: VerifyIn, ledger=Depends(get_ledger)):
    """Verify a transaction root against a committed bunch.

    The bunch is taken from bunch_index when given, otherwise located from
    block_number. The leaf index defaults to block_number - start.
    """
    if body.bunch_index is not None:
        record = await _record_or_404(ledger, body.bunch_index)
    elif body.block_number is not None:
        index = await _read(locate_bunch, ledger, body.block_number, False)
        if index is None:
            return VerifyResult(verdict="FAIL",
                                reason=f"Block {body.block_number} is not in any committed bunch")
        record = await _read(ledger.get, index)
    else:
        raise HTTPException(422, detail="bunch_index or block_number is required")

    if body.leaf_index is not None:
        idx = body.leaf_index
        if body.block_number is not None and idx != body.block_number - record.start_block_number:
            raise HTTPException(422, detail=(
                f"leaf_index {idx} does not match block {body.block_number} "
                f"in bunch starting at {record.start_block_number}"))
    elif body.block_number is not None:
        idx = leaf_index(record, body.block_number)
    else:
        raise HTTPException(422, detail="leaf_index or block_number is required")

    ok = verify_tx_root(record.transactions_mega_root, record.bunch_depth,
                        body.transactions_root, idx, body.proof)
    if not ok:
        log.warning("proof rejected bunch=%d leaf=%d tx_root=%s",
                    record.index, idx, body.transactions_root[:18])

    return VerifyResult(
        verdict="PASS" if ok else "FAIL",
        reason=("Proof reproduces the committed transactions mega root" if ok
                else "Proof does not reproduce the committed transactions mega root"),
        bunch_index=record.index,
        leaf_index=idx,
        transactions_mega_root=record.transactions_mega_root,
        proof_valid=ok,
    )
