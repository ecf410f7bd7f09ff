"""
schemas.py - Bunch and proof data contracts.

Digests cross this boundary as 0x-prefixed hex strings and are validated to
be exactly 32 bytes. The core (merkle.py, proofs.py) works on raw bytes.

A bunch covers blocks [start_block_number, start_block_number + 2^bunch_depth).
Committed bunches form a gapless, append-only sequence indexed from 0.
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .hashing import ZERO_DIGEST, digest_hex, to_digest

SCHEMA_VERSION = "1.0"


def _hex32(v) -> str:
    try:
        return digest_hex(to_digest(v))
    except ValueError as exc:
        raise ValueError(f"expected 32-byte hex digest: {exc}") from exc


class BlockHeader(BaseModel):
    """The two per-block roots a bunch commits to."""
    block_number:      int = Field(..., ge=0)
    transactions_root: str
    receipts_root:     str

    @field_validator("transactions_root", "receipts_root", mode="before")
    @classmethod
    def validate_root(cls, v):
        return _hex32(v)


class BunchHeader(BaseModel):
    """Header published on the parent chain for one bunch."""
    start_block_number:     int = Field(..., ge=0)
    bunch_depth:            int = Field(..., ge=0, le=64)
    transactions_mega_root: str
    receipts_mega_root:     str = Field(default=digest_hex(ZERO_DIGEST))

    @field_validator("transactions_mega_root", "receipts_mega_root", mode="before")
    @classmethod
    def validate_root(cls, v):
        return _hex32(v)

    @property
    def size(self) -> int:
        return 2 ** self.bunch_depth

    @property
    def end_block_number(self) -> int:
        """Exclusive upper bound of the covered block range."""
        return self.start_block_number + self.size


class BunchRecord(BunchHeader):
    """A committed bunch header with its position in the ledger."""
    index: int = Field(..., ge=0)


class ProofOut(BaseModel):
    block_number:      int
    bunch_index:       Optional[int] = None
    start_block_number: int
    bunch_depth:       int
    leaf_index:        int
    transactions_root: str
    proof:             str   = Field(..., description="0x-hex, 32-byte stride, leaf level first")
    transactions_mega_root: str


class VerifyIn(BaseModel):
    """Claim submitted by a relying party."""
    transactions_root: str
    proof:             str = "0x"
    block_number:      Optional[int] = Field(default=None, ge=0)
    leaf_index:        Optional[int] = Field(default=None, ge=0)
    bunch_index:       Optional[int] = Field(default=None, ge=0)

    @field_validator("transactions_root", mode="before")
    @classmethod
    def validate_root(cls, v):
        return _hex32(v)


class VerifyResult(BaseModel):
    verdict:     str   # PASS | FAIL
    reason:      str
    bunch_index: Optional[int] = None
    leaf_index:  Optional[int] = None
    transactions_mega_root: Optional[str] = None
    proof_valid: bool = False


class LocateResult(BaseModel):
    block_number: int
    bunch_index:  Optional[int] = None
    leaf_index:   Optional[int] = None
    found:        bool = False
