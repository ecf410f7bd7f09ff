"""Tests for ledger backends: stub contiguity and the contract adapter."""
import pytest

from checkpoint.app.errors import SourceUnavailable
from checkpoint.app.hashing import ZERO_DIGEST, digest_hex, keccak256
from checkpoint.app.ledger.adapter import InMemoryLedger, LedgerError
from checkpoint.app.ledger.esn import PlasmaManagerLedger
from checkpoint.app.schemas import BunchHeader

ROOT = keccak256(b"mega")


def header(start, depth):
    return BunchHeader(start_block_number=start, bunch_depth=depth, transactions_mega_root=ROOT)


def test_append_assigns_sequential_indexes():
    ledger = InMemoryLedger()
    assert ledger.last_index() is None
    r0 = ledger.append(header(0, 2))
    r1 = ledger.append(header(4, 1))
    assert (r0.index, r1.index) == (0, 1)
    assert ledger.last_index() == 1
    assert ledger.get(1).start_block_number == 4
    assert len(ledger) == 2


def test_append_rejects_gap_and_overlap():
    ledger = InMemoryLedger([header(0, 2)])
    with pytest.raises(ValueError):
        ledger.append(header(5, 1))
    with pytest.raises(ValueError):
        ledger.append(header(3, 1))
    assert ledger.last_index() == 0


def test_first_bunch_may_start_anywhere():
    ledger = InMemoryLedger([header(1000, 3)])
    assert ledger.get(0).end_block_number == 1008


def test_get_missing_index():
    with pytest.raises(IndexError):
        InMemoryLedger().get(0)


def test_receipts_root_defaults_to_zero_hash():
    assert header(0, 0).receipts_mega_root == digest_hex(ZERO_DIGEST)


class _Call:
    def __init__(self, value):
        self._value = value

    def call(self):
        if isinstance(self._value, Exception):
            raise self._value
        return self._value


class FakeFunctions:
    def __init__(self, bunches, fail=False):
        self._bunches = bunches
        self._fail = fail

    def bunches(self, index):
        if self._fail:
            return _Call(ConnectionError("node down"))
        return _Call(self._bunches[index])

    def lastBunchIndex(self):
        if self._fail:
            return _Call(ConnectionError("node down"))
        return _Call(len(self._bunches))


class FakeContract:
    def __init__(self, bunches, fail=False):
        self.functions = FakeFunctions(bunches, fail)


def test_contract_ledger_reads_records():
    contract = FakeContract([(0, 10, ROOT, ZERO_DIGEST), (1024, 10, ROOT, ROOT)])
    ledger = PlasmaManagerLedger(contract=contract)
    assert ledger.last_index() == 1
    record = ledger.get(1)
    assert record.index == 1
    assert record.start_block_number == 1024
    assert record.bunch_depth == 10
    assert record.transactions_mega_root == digest_hex(ROOT)


def test_contract_ledger_empty():
    assert PlasmaManagerLedger(contract=FakeContract([])).last_index() is None


def test_contract_ledger_wraps_failures():
    ledger = PlasmaManagerLedger(contract=FakeContract([], fail=True))
    with pytest.raises(SourceUnavailable):
        ledger.last_index()
    with pytest.raises(SourceUnavailable):
        ledger.get(0)


def test_contract_ledger_refuses_append():
    ledger = PlasmaManagerLedger(contract=FakeContract([]))
    with pytest.raises(LedgerError):
        ledger.append(header(0, 1))


def test_backends_implement_ledger_interface():
    from checkpoint.app.ledger.adapter import BunchLedger

    assert isinstance(InMemoryLedger(), BunchLedger)
    assert isinstance(PlasmaManagerLedger(contract=FakeContract([])), BunchLedger)
    assert not isinstance([header(0, 1)], BunchLedger)
