"""
ledger/adapter.py - Bunch ledger interface.

The locator and the service read bunch records without knowing whether they
come from the PlasmaManager contract or from an in-process stub. Swapping
backends requires only changing the LEDGER_BACKEND env var.

Read interface used by the locator:
  get(index)    -> BunchRecord
  last_index()  -> index of the newest record, None when nothing is committed
"""
import logging
import os
from typing import Optional, Protocol, runtime_checkable

from ..schemas import BunchHeader, BunchRecord

log = logging.getLogger("checkpoint.ledger")

BACKEND = os.getenv("LEDGER_BACKEND", "stub")  # stub | esn


class LedgerError(Exception):
    """The ledger rejected or cannot perform an operation."""


@runtime_checkable
class BunchLedger(Protocol):
    def get(self, index: int) -> BunchRecord: ...

    def last_index(self) -> Optional[int]: ...

    def append(self, header: BunchHeader) -> BunchRecord: ...


#  Stub backend

class InMemoryLedger:
    """Append-only list of bunch records kept in process memory.

    Enforces the contiguity invariant: every bunch after the first starts
    exactly where the previous one ends.
    """

    def __init__(self, records: Optional[list] = None):
        self._records: list[BunchRecord] = []
        for header in records or []:
            self.append(header)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, index: int) -> BunchRecord:
        if not 0 <= index < len(self._records):
            raise IndexError(f"no bunch at index {index}")
        return self._records[index]

    def last_index(self) -> Optional[int]:
        return len(self._records) - 1 if self._records else None

    def records(self) -> list[BunchRecord]:
        return list(self._records)

    def append(self, header: BunchHeader) -> BunchRecord:
        if self._records:
            expected = self._records[-1].end_block_number
            if header.start_block_number != expected:
                raise ValueError(
                    f"bunch must start at block {expected}, got {header.start_block_number}")
        record = BunchRecord(index=len(self._records), **header.model_dump(exclude={"index"}))
        self._records.append(record)
        log.info("stub append bunch=%d start=%d depth=%d root=%s",
                 record.index, record.start_block_number, record.bunch_depth,
                 record.transactions_mega_root[:18])
        return record


_ledger = None


def get_ledger():
    """Return the process-wide ledger for the configured backend."""
    global _ledger
    if _ledger is None:
        if BACKEND == "esn":
            from .esn import PlasmaManagerLedger
            _ledger = PlasmaManagerLedger()
        else:
            _ledger = InMemoryLedger()
        log.info("ledger backend=%s", BACKEND)
    return _ledger
