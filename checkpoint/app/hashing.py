"""
Hashing primitives for bunch commitments.

All digest handling goes through this module so the tree code, the proof
codec and the service agree on one representation.

Conventions:
  - Digests are raw 32-byte values inside the core
  - Hex (0x-prefixed, lowercase) only at the boundary: API, CLI, ledger
  - Node hash = Keccak-256(left || right), no prefix, no separator
"""
from typing import Callable, Union

from web3 import Web3

DIGEST_SIZE = 32
ZERO_DIGEST = b"\x00" * DIGEST_SIZE

HashFn = Callable[[bytes], bytes]


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of raw bytes."""
    return bytes(Web3.keccak(primitive=data))


def hash_pair(left: bytes, right: bytes, hash_fn: HashFn = keccak256) -> bytes:
    return hash_fn(left + right)


def strip_0x(value: str) -> str:
    s = value.strip()
    if s[:2].lower() == "0x":
        s = s[2:]
    return s


def to_digest(value: Union[bytes, str]) -> bytes:
    """Normalise a digest given as raw bytes or hex (with or without 0x)."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raw = bytes.fromhex(strip_0x(value))
    if len(raw) != DIGEST_SIZE:
        raise ValueError(f"digest must be {DIGEST_SIZE} bytes, got {len(raw)}")
    return raw


def digest_hex(digest: bytes) -> str:
    return "0x" + bytes(digest).hex()
