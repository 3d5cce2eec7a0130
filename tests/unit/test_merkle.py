"""
Unit tests for the sorted-pair Merkle tree.

Tests cover:
1. Leaf hashing and validation
2. Root determinism under permutation
3. Proof generation and verification (round-trip)
4. Odd-node promotion
5. Error cases (empty set, conflicting duplicates, unknown leaf)
"""

import random

import pytest

from claimdrop.crypto import address_to_bytes, encode_uint256, keccak256
from claimdrop.core.commitment import Leaf, MerkleTree, hash_pair, verify_proof
from claimdrop.core.errors import (
    DuplicateLeafError,
    EmptyLeafSetError,
    InvalidAddressError,
    InvalidAmountError,
    LeafNotFoundError,
)


ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40


def make_leaves(n: int):
    return [Leaf(f"0x{i + 1:040x}", (i + 1) * 10) for i in range(n)]


# =============================================================================
# Leaf Tests
# =============================================================================


class TestLeaf:
    """Tests for leaf construction and hashing."""

    def test_leaf_hash_is_packed_keccak(self):
        """Leaf hash should be keccak256(address || uint256(amount))."""
        leaf = Leaf(ADDR_A, 100)
        expected = keccak256(address_to_bytes(ADDR_A) + encode_uint256(100))
        assert leaf.hash() == expected

    def test_owner_normalized(self):
        """Mixed-case owners should hash the same as lower-case."""
        assert Leaf("0x" + "A" * 40, 5).hash() == Leaf(ADDR_A, 5).hash()
        assert Leaf("0x" + "A" * 40, 5).owner == ADDR_A

    def test_invalid_owner_rejected(self):
        """Owner must be a 20-byte hex address."""
        with pytest.raises(InvalidAddressError):
            Leaf("0x1234", 5)

    def test_negative_amount_rejected(self):
        """Amount must be a non-negative integer."""
        with pytest.raises(InvalidAmountError):
            Leaf(ADDR_A, -1)


# =============================================================================
# Tree Tests
# =============================================================================


class TestMerkleTree:
    """Tests for tree construction and proofs."""

    def test_empty_set_fails(self):
        """Building from zero leaves should fail, not produce a root."""
        with pytest.raises(EmptyLeafSetError):
            MerkleTree([])

    def test_single_leaf_root_is_leaf_hash(self):
        """A one-leaf tree has the leaf hash as root and an empty proof."""
        leaf = Leaf(ADDR_A, 100)
        tree = MerkleTree([leaf])
        assert tree.root == leaf.hash()
        assert tree.prove(leaf) == []
        assert tree.verify(leaf, [])

    def test_two_leaves_root_is_sorted_pair(self):
        """Root of two leaves is H(min || max) of their hashes."""
        a, b = Leaf(ADDR_A, 100), Leaf(ADDR_B, 50)
        tree = MerkleTree([a, b])
        ha, hb = a.hash(), b.hash()
        assert tree.root == keccak256(min(ha, hb) + max(ha, hb))
        assert tree.prove(a) == [hb]

    def test_hash_pair_is_commutative(self):
        """Sorted-pair hashing ignores argument order."""
        x, y = keccak256(b"x"), keccak256(b"y")
        assert hash_pair(x, y) == hash_pair(y, x)

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 7, 8, 13])
    def test_every_leaf_proves(self, n):
        """Every leaf's proof should verify against the root."""
        leaves = make_leaves(n)
        tree = MerkleTree(leaves)
        for leaf in leaves:
            assert verify_proof(tree.prove(leaf), leaf.hash(), tree.root)

    def test_root_independent_of_order(self):
        """Permuting input order must not change the root."""
        leaves = make_leaves(11)
        root = MerkleTree(leaves).root
        rng = random.Random(7)
        for _ in range(5):
            shuffled = leaves[:]
            rng.shuffle(shuffled)
            assert MerkleTree(shuffled).root == root

    def test_odd_node_promoted(self):
        """With three leaves, the unpaired hash is promoted unchanged."""
        leaves = make_leaves(3)
        tree = MerkleTree(leaves)
        bottom = tree.levels[0]
        assert tree.levels[1][1] == bottom[2]
        assert tree.root == hash_pair(hash_pair(bottom[0], bottom[1]), bottom[2])
        # The promoted leaf needs only one sibling
        promoted = next(l for l in leaves if l.hash() == bottom[2])
        assert len(tree.prove(promoted)) == 1

    def test_wrong_amount_does_not_verify(self):
        """A proof for (owner, amount) should not verify a different amount."""
        leaves = make_leaves(4)
        tree = MerkleTree(leaves)
        proof = tree.prove(leaves[0])
        forged = Leaf(leaves[0].owner, leaves[0].amount + 1)
        assert not verify_proof(proof, forged.hash(), tree.root)

    def test_proof_does_not_verify_other_root(self):
        """Proofs are bound to the root they were built for."""
        leaves = make_leaves(4)
        tree = MerkleTree(leaves)
        other = MerkleTree(make_leaves(5))
        assert not verify_proof(tree.prove(leaves[0]), leaves[0].hash(), other.root)

    def test_identical_duplicates_collapse(self):
        """The same (owner, amount) twice is one leaf."""
        tree = MerkleTree([Leaf(ADDR_A, 1), Leaf(ADDR_A, 1), Leaf(ADDR_B, 2)])
        assert len(tree) == 2

    def test_conflicting_duplicates_rejected(self):
        """The same owner with two amounts is a caller error."""
        with pytest.raises(DuplicateLeafError):
            MerkleTree([Leaf(ADDR_A, 1), Leaf(ADDR_A, 2)])

    def test_unknown_leaf_cannot_be_proven(self):
        """Proving a leaf outside the tree should fail."""
        tree = MerkleTree(make_leaves(3))
        with pytest.raises(LeafNotFoundError):
            tree.prove(Leaf(ADDR_A, 1))

    def test_contains(self):
        leaves = make_leaves(3)
        tree = MerkleTree(leaves)
        assert leaves[1] in tree
        assert Leaf(ADDR_A, 1) not in tree
