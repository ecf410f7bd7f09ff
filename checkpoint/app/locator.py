"""
locator.py - Find the committed bunch that covers a block number.

Committed bunches are contiguous and ordered by start block, so a binary
search over record indices needs O(log N) ledger reads. Reads are issued one
at a time; each midpoint depends on the previous answer.

Range boundary:
  half-open (default)  start <= block <  start + 2^depth
  inclusive            start <= block <= start + 2^depth
The inclusive form matches the PlasmaManager client that first shipped this
search; with it the first block of bunch i+1 is also claimed by bunch i.
Select it with BUNCH_RANGE_INCLUSIVE=1.
"""
import logging
import os
from typing import Optional, Sequence, Union

from .errors import IndexOutOfRange
from .ledger.adapter import BunchLedger

log = logging.getLogger("checkpoint.locator")

BUNCH_RANGE_INCLUSIVE = os.getenv("BUNCH_RANGE_INCLUSIVE", "0").lower() in ("1", "true", "yes")


def bunch_contains(record, block_number: int, inclusive: bool = False) -> bool:
    start = record.start_block_number
    end = start + 2 ** record.bunch_depth
    if inclusive:
        return start <= block_number <= end
    return start <= block_number < end


class _RecordList:
    """Ledger read interface over an already-loaded, ordered list of records."""

    def __init__(self, records: Sequence):
        self._records = records

    def get(self, index: int):
        return self._records[index]

    def last_index(self) -> Optional[int]:
        return len(self._records) - 1 if self._records else None


def locate_bunch(ledger: Union[BunchLedger, Sequence], block_number: int,
                 inclusive: Optional[bool] = None) -> Optional[int]:
    """Return the index of the bunch covering block_number, or None.

    ledger is anything with get(index) / last_index(), or a plain ordered
    sequence of records. None means the block has not been committed in any
    bunch yet (or no bunch exists at all).
    """
    if inclusive is None:
        inclusive = BUNCH_RANGE_INCLUSIVE
    if isinstance(ledger, (list, tuple)):
        ledger = _RecordList(ledger)

    last = ledger.last_index()
    if last is None:
        return None

    lo, hi = 0, last
    while lo <= hi:
        mid = (lo + hi) // 2
        record = ledger.get(mid)
        log.debug("probe bunch=%d range=[%d, %d) block=%d",
                  mid, record.start_block_number,
                  record.start_block_number + 2 ** record.bunch_depth, block_number)
        if bunch_contains(record, block_number, inclusive):
            return mid
        if block_number < record.start_block_number:
            hi = mid - 1
        else:
            lo = mid + 1
    return None


def leaf_index(record, block_number: int) -> int:
    """Position of block_number inside its bunch."""
    idx = block_number - record.start_block_number
    if not 0 <= idx < 2 ** record.bunch_depth:
        raise IndexOutOfRange(
            f"block {block_number} outside bunch starting at {record.start_block_number} "
            f"(depth {record.bunch_depth})")
    return idx
