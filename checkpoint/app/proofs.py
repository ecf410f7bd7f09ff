"""
proofs.py - Inclusion proof wire format and relying-party verification.

Wire format:
  proof = sibling_0 || sibling_1 || ... || sibling_{depth-1}
  Fixed 32-byte stride, leaf-adjacent sibling first, no length prefix.
  Hex form is 0x-prefixed; "0x" alone is the empty proof of a depth-0 bunch.
"""
from typing import Sequence, Union

from .errors import IndexOutOfRange, MalformedProof
from .hashing import DIGEST_SIZE, strip_0x, to_digest
from .merkle import verify_proof


def encode_proof(proof: Sequence[bytes]) -> bytes:
    return b"".join(to_digest(p) for p in proof)


def proof_hex(proof: Sequence[bytes]) -> str:
    return "0x" + encode_proof(proof).hex()


def decode_proof(data: Union[bytes, str]) -> list[bytes]:
    """Split a serialized proof into its 32-byte siblings."""
    if isinstance(data, str):
        s = strip_0x(data)
        try:
            raw = bytes.fromhex(s)
        except ValueError as exc:
            raise MalformedProof(f"proof is not valid hex: {exc}") from exc
    else:
        raw = bytes(data)

    if len(raw) % DIGEST_SIZE:
        raise MalformedProof(
            f"proof length {len(raw)} is not a multiple of {DIGEST_SIZE} bytes")
    return [raw[i:i + DIGEST_SIZE] for i in range(0, len(raw), DIGEST_SIZE)]


def verify_tx_root(mega_root: Union[bytes, str], bunch_depth: int,
                   tx_root: Union[bytes, str], tx_root_index: int,
                   proof: Union[bytes, str]) -> bool:
    """Check a block's transaction root against a published bunch mega root.

    mega_root and bunch_depth come from the trusted bunch record; tx_root,
    its index inside the bunch and the proof are supplied by the claimant.
    """
    bunch_max_index = 2 ** bunch_depth - 1
    if tx_root_index < 0 or tx_root_index > bunch_max_index:
        raise IndexOutOfRange(
            f"tx root index {tx_root_index} outside [0, {bunch_max_index}]")

    siblings = decode_proof(proof)
    if len(siblings) != bunch_depth:
        raise MalformedProof(
            f"proof has {len(siblings)} elements, bunch depth is {bunch_depth}")

    return verify_proof(to_digest(mega_root), to_digest(tx_root), tx_root_index, siblings)
