"""
ledger/esn.py - PlasmaManager contract adapter using web3.py.

Reads committed bunch headers from the PlasmaManager contract on the parent
chain: bunches(index) and lastBunchIndex(). The contract's lastBunchIndex is
the number of committed bunches, so the newest record sits at count - 1.

Environment variables:
  LEDGER_RPC         - JSON-RPC endpoint of the chain hosting PlasmaManager
  CONTRACT_ADDRESS   - deployed PlasmaManager address (optional if the ABI file has it)
  CONTRACT_ABI_PATH  - JSON with "abi" and optionally "address"

Submitting a bunch header needs validator signatures, which this service does
not hold, so append() is refused here.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional

from ..errors import SourceUnavailable
from ..schemas import BunchHeader, BunchRecord
from .adapter import LedgerError

log = logging.getLogger("checkpoint.ledger.esn")

LEDGER_RPC = os.getenv("LEDGER_RPC", "http://localhost:8545")
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS", "")
CONTRACT_ABI_PATH = Path(os.getenv("CONTRACT_ABI_PATH", "contracts/deployed.json"))

PLASMA_MANAGER_ABI = [
    {
        "type": "function", "name": "bunches", "stateMutability": "view",
        "inputs": [{"name": "", "type": "uint256"}],
        "outputs": [
            {"name": "startBlockNumber", "type": "uint256"},
            {"name": "bunchDepth", "type": "uint256"},
            {"name": "transactionsMegaRoot", "type": "bytes32"},
            {"name": "receiptsMegaRoot", "type": "bytes32"},
        ],
    },
    {
        "type": "function", "name": "lastBunchIndex", "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class PlasmaManagerLedger:
    """Read-only view of bunch records stored in the PlasmaManager contract."""

    def __init__(self, rpc_url: str = LEDGER_RPC, address: str = CONTRACT_ADDRESS,
                 abi_path: Path = CONTRACT_ABI_PATH, contract=None):
        self._rpc_url = rpc_url
        self._address = address
        self._abi_path = abi_path
        self._contract = contract

    def _load(self):
        if self._contract is not None:
            return self._contract

        from web3 import Web3
        from web3.middleware import ExtraDataToPOAMiddleware

        w3 = Web3(Web3.HTTPProvider(self._rpc_url))
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        addr, abi = self._address, PLASMA_MANAGER_ABI
        if self._abi_path.exists():
            deployed = json.loads(self._abi_path.read_text())
            abi = deployed.get("abi") or abi
            if not addr:
                addr = deployed.get("address", "")

        if not addr:
            raise SourceUnavailable("CONTRACT_ADDRESS not configured (missing deployed.json?)")

        self._contract = w3.eth.contract(address=Web3.to_checksum_address(addr), abi=abi)
        log.info("PlasmaManager connected: rpc=%s contract=%s", self._rpc_url, addr)
        return self._contract

    def get(self, index: int) -> BunchRecord:
        try:
            start, depth, tx_root, receipts_root = \
                self._load().functions.bunches(index).call()[:4]
        except SourceUnavailable:
            raise
        except Exception as exc:
            log.error("bunches(%d) failed: %s", index, exc)
            raise SourceUnavailable(f"cannot read bunch {index}: {exc}") from exc
        return BunchRecord(
            index=index,
            start_block_number=int(start),
            bunch_depth=int(depth),
            transactions_mega_root=bytes(tx_root),
            receipts_mega_root=bytes(receipts_root),
        )

    def last_index(self) -> Optional[int]:
        try:
            count = int(self._load().functions.lastBunchIndex().call())
        except SourceUnavailable:
            raise
        except Exception as exc:
            log.error("lastBunchIndex() failed: %s", exc)
            raise SourceUnavailable(f"cannot read bunch count: {exc}") from exc
        return count - 1 if count else None

    def append(self, header: BunchHeader) -> BunchRecord:
        raise LedgerError("PlasmaManager submission requires validator signatures; "
                          "submit bunch headers through the validator set")
