"""Merkle commitments over (owner, amount) leaves and snapshot artifacts"""
from claimdrop.core.commitment.merkle import Leaf, MerkleTree, hash_pair, verify_proof
from claimdrop.core.commitment.snapshot import (
    ClaimEntry,
    SnapshotArtifact,
    build_leaves,
    build_snapshot,
    publish_snapshot,
)

__all__ = [
    "Leaf",
    "MerkleTree",
    "hash_pair",
    "verify_proof",
    "ClaimEntry",
    "SnapshotArtifact",
    "build_leaves",
    "build_snapshot",
    "publish_snapshot",
]
