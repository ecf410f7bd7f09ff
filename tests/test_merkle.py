"""Tests for the bunch Merkle tree: root, proof generation, verification."""
import itertools

import pytest

from checkpoint.app.errors import IndexOutOfRange, InvalidLeafCount
from checkpoint.app.hashing import keccak256
from checkpoint.app.merkle import (
    compute_proof, compute_root, depth_of, reduce_level, verify_proof,
)


def leaves(n):
    return [keccak256(f"leaf-{i}".encode()) for i in range(n)]


def H(a, b):
    return keccak256(a + b)


def flip(digest: bytes, bit: int = 0) -> bytes:
    return bytes([digest[0] ^ (1 << bit)]) + digest[1:]


def test_depth_of_powers_of_two():
    assert [depth_of(2 ** d) for d in range(8)] == list(range(8))


@pytest.mark.parametrize("count", [0, 3, 5, 6, 7, 12, 1000])
def test_depth_of_rejects_other_counts(count):
    with pytest.raises(InvalidLeafCount):
        depth_of(count)


def test_single_leaf_is_its_own_root():
    (leaf,) = leaves(1)
    assert compute_root([leaf]) == leaf
    assert compute_proof([leaf], 0) == []
    assert verify_proof(leaf, leaf, 0, []) is True


def test_four_leaf_root_shape():
    a, b, c, d = leaves(4)
    assert compute_root([a, b, c, d]) == H(H(a, b), H(c, d))


def test_four_leaf_proof_for_even_index():
    a, b, c, d = leaves(4)
    proof = compute_proof([a, b, c, d], 2)
    assert proof == [d, H(a, b)]
    assert verify_proof(compute_root([a, b, c, d]), c, 2, proof)


def test_four_leaf_proof_for_odd_index():
    a, b, c, d = leaves(4)
    proof = compute_proof([a, b, c, d], 1)
    assert proof == [a, H(c, d)]
    assert verify_proof(compute_root([a, b, c, d]), b, 1, proof)


def test_root_rejects_non_power_of_two():
    with pytest.raises(InvalidLeafCount):
        compute_root(leaves(3))
    with pytest.raises(InvalidLeafCount):
        compute_root([])


def test_proof_rejects_bad_inputs():
    with pytest.raises(InvalidLeafCount):
        compute_proof(leaves(6), 0)
    with pytest.raises(IndexOutOfRange):
        compute_proof(leaves(4), 4)
    with pytest.raises(IndexOutOfRange):
        compute_proof(leaves(4), -1)


def test_every_leaf_verifies_for_several_depths():
    for depth in range(6):
        ls = leaves(2 ** depth)
        root = compute_root(ls)
        for i, leaf in enumerate(ls):
            proof = compute_proof(ls, i)
            assert len(proof) == depth
            assert verify_proof(root, leaf, i, proof), (depth, i)


def test_leaf_at_wrong_index_fails():
    ls = leaves(8)
    root = compute_root(ls)
    proof = compute_proof(ls, 5)
    assert verify_proof(root, ls[5], 4, proof) is False


def test_tampering_any_input_fails():
    ls = leaves(8)
    root = compute_root(ls)
    proof = compute_proof(ls, 3)

    assert verify_proof(flip(root), ls[3], 3, proof) is False
    assert verify_proof(root, flip(ls[3], 7), 3, proof) is False
    for k in range(len(proof)):
        tampered = list(proof)
        tampered[k] = flip(tampered[k], 3)
        assert verify_proof(root, ls[3], 3, tampered) is False


def test_verify_rejects_index_beyond_proof_reach():
    ls = leaves(4)
    proof = compute_proof(ls, 0)
    with pytest.raises(IndexOutOfRange):
        verify_proof(compute_root(ls), ls[0], 4, proof)
    with pytest.raises(IndexOutOfRange):
        verify_proof(ls[0], ls[0], 1, [])


def test_root_is_deterministic_and_input_untouched():
    ls = leaves(16)
    snapshot = list(ls)
    assert compute_root(ls) == compute_root(ls)
    compute_proof(ls, 7)
    assert ls == snapshot


def test_leaf_order_matters():
    a, b = leaves(2)
    assert compute_root([a, b]) != compute_root([b, a])


def test_reduce_level_pairs_adjacent():
    ls = leaves(4)
    assert reduce_level(ls) == [H(ls[0], ls[1]), H(ls[2], ls[3])]


def test_custom_hash_function_is_used_throughout():
    def sha(data):
        import hashlib
        return hashlib.sha256(data).digest()

    ls = leaves(4)
    root = compute_root(ls, hash_fn=sha)
    assert root != compute_root(ls)
    for i in range(4):
        assert verify_proof(root, ls[i], i, compute_proof(ls, i, hash_fn=sha), hash_fn=sha)


def test_proof_from_one_tree_does_not_verify_in_another():
    ls = leaves(4)
    other = [keccak256(b"x" + l) for l in ls]
    for i, j in itertools.product(range(4), repeat=2):
        assert verify_proof(compute_root(other), ls[i], j, compute_proof(ls, i)) is False
