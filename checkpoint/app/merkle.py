"""
merkle.py - Binary Merkle tree over block transaction roots ("bunch root").

A bunch of 2^depth consecutive blocks is summarised into one 32-byte mega
root that is published on the parent chain. Any block's transaction root can
later be proven to be part of the bunch with exactly `depth` sibling hashes.

Tree shape:
  Leaves are kept in block-number order (never sorted).
  Leaf count must be a power of two; no padding, no odd-node duplication.

Hashing:
  Node:   hash_fn(left || right)  - positional, not sorted
  Root:   single remaining digest; a one-leaf bunch is its own root

Index convention (shared by proof and verification):
  odd index  -> node is the right child, sibling sits at index - 1
  even index -> node is the left child,  sibling sits at index + 1
"""
import logging
from typing import Sequence

from .errors import IndexOutOfRange, InvalidLeafCount
from .hashing import HashFn, hash_pair, keccak256

log = logging.getLogger("checkpoint.merkle")


def depth_of(count: int) -> int:
    """Return log2(count), or raise InvalidLeafCount if count is not 2^k."""
    if count < 1 or count & (count - 1):
        raise InvalidLeafCount(count)
    return count.bit_length() - 1


def reduce_level(level: Sequence[bytes], hash_fn: HashFn = keccak256) -> list[bytes]:
    """Hash adjacent pairs left to right, halving the level."""
    return [hash_pair(level[i], level[i + 1], hash_fn) for i in range(0, len(level), 2)]


def compute_root(leaves: Sequence[bytes], hash_fn: HashFn = keccak256) -> bytes:
    """Return the mega root of a power-of-two sequence of leaf digests."""
    depth_of(len(leaves))
    layer = list(leaves)
    while len(layer) > 1:
        layer = reduce_level(layer, hash_fn)
    return layer[0]


def compute_proof(leaves: Sequence[bytes], index: int,
                  hash_fn: HashFn = keccak256) -> list[bytes]:
    """Return the sibling path for leaves[index], leaf level first.

    The proof has exactly depth entries; a single-leaf bunch yields [].
    """
    depth_of(len(leaves))
    if not 0 <= index < len(leaves):
        raise IndexOutOfRange(f"leaf index {index} outside [0, {len(leaves)})")

    layer = list(leaves)
    proof: list[bytes] = []
    while len(layer) > 1:
        sibling = index - 1 if index % 2 else index + 1
        proof.append(layer[sibling])
        layer = reduce_level(layer, hash_fn)
        index //= 2
    return proof


def verify_proof(root: bytes, leaf: bytes, index: int, proof: Sequence[bytes],
                 hash_fn: HashFn = keccak256) -> bool:
    """Recompute the root from leaf + proof and compare it to the trusted root.

    A mismatch returns False. Only a malformed shape (index beyond what the
    proof length can address) raises.
    """
    if index < 0 or index > 2 ** len(proof) - 1:
        raise IndexOutOfRange(
            f"leaf index {index} not addressable with a {len(proof)}-level proof")

    cur = bytes(leaf)
    for sibling in proof:
        if index % 2:
            cur = hash_pair(sibling, cur, hash_fn)
        else:
            cur = hash_pair(cur, sibling, hash_fn)
        index //= 2

    ok = cur == bytes(root)
    if not ok:
        log.debug("proof mismatch: computed=%s expected=%s", cur.hex()[:16], bytes(root).hex()[:16])
    return ok
