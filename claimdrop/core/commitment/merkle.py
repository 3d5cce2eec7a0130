"""
Sorted-pair Merkle tree for reward commitments.

Conceptual Background:
---------------------
A Merkle tree commits to the full set of (owner, amount) leaves with a single
32-byte root, while letting each recipient prove their own leaf with a short
list of sibling hashes.

Construction:
- Each leaf is hashed as keccak256(owner || uint256(amount))
- Leaf hashes are sorted, so input order never changes the root
- Each pair is sorted before hashing: H(min(a, b) || max(a, b))
- An odd node at the end of a level is promoted unchanged (no duplication)

Because pairs are sorted, a proof is just the list of siblings; the verifier
never needs to know whether a sibling sat on the left or the right.

Properties:
----------
- Build: O(n log n) (dominated by the sort)
- Prove: O(log n)
- Verify: O(log n)
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from claimdrop.crypto import (
    address_to_bytes,
    bytes_to_hex,
    encode_uint256,
    keccak256,
    normalize_address,
)
from claimdrop.core.errors import (
    DuplicateLeafError,
    EmptyLeafSetError,
    InvalidAddressError,
    InvalidAmountError,
    LeafNotFoundError,
)


# =============================================================================
# Leaf
# =============================================================================


@dataclass(frozen=True)
class Leaf:
    """
    A single committed (owner, amount) fact.
    
    Attributes:
        owner: Recipient address (normalized to lower-case 0x hex)
        amount: Reward amount in token base units
    """
    owner: str
    amount: int

    def __post_init__(self):
        try:
            object.__setattr__(self, "owner", normalize_address(self.owner))
        except ValueError as exc:
            raise InvalidAddressError(str(exc)) from exc
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount < 0:
            raise InvalidAmountError(f"Leaf amount must be a non-negative int, got {self.amount!r}")

    def hash(self) -> bytes:
        """keccak256(owner || uint256(amount)), packed encoding."""
        return keccak256(address_to_bytes(self.owner) + encode_uint256(self.amount))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two nodes after sorting them."""
    if b < a:
        a, b = b, a
    return keccak256(a + b)


def verify_proof(proof: Sequence[bytes], leaf_hash: bytes, root: bytes) -> bool:
    """
    Verify a sorted-pair Merkle proof.
    
    Args:
        proof: Sibling hashes, bottom-up
        leaf_hash: Hash of the leaf being proven
        root: Expected root hash
        
    Returns:
        True if the proof reduces to root
    """
    current = leaf_hash
    for sibling in proof:
        current = hash_pair(current, sibling)
    return current == root


# =============================================================================
# Merkle Tree
# =============================================================================


class MerkleTree:
    """
    Immutable sorted-pair Merkle tree over a leaf set.
    
    All levels are computed once at construction.
    
    Attributes:
        leaves: Leaves in sorted-hash order
        levels: levels[0] holds sorted leaf hashes, levels[-1] holds the root
    """

    def __init__(self, leaves: Iterable[Leaf]):
        by_owner: Dict[str, Leaf] = {}
        for leaf in leaves:
            existing = by_owner.get(leaf.owner)
            if existing is not None and existing.amount != leaf.amount:
                raise DuplicateLeafError(
                    f"Owner {leaf.owner} appears with amounts {existing.amount} and {leaf.amount}"
                )
            by_owner[leaf.owner] = leaf

        if not by_owner:
            raise EmptyLeafSetError("Cannot build a Merkle tree from an empty leaf set")

        hashed = sorted((leaf.hash(), leaf) for leaf in by_owner.values())
        self.leaves: List[Leaf] = [leaf for _, leaf in hashed]
        self._index: Dict[bytes, int] = {h: i for i, (h, _) in enumerate(hashed)}
        self.levels: List[List[bytes]] = self._build([h for h, _ in hashed])

    @classmethod
    def from_leaves(cls, leaves: Iterable[Leaf]) -> "MerkleTree":
        """Build a tree from leaves."""
        return cls(leaves)

    @staticmethod
    def _build(layer: List[bytes]) -> List[List[bytes]]:
        """Hash level by level until one node remains."""
        levels = [layer]
        while len(layer) > 1:
            next_layer = []
            for i in range(0, len(layer), 2):
                if i + 1 < len(layer):
                    next_layer.append(hash_pair(layer[i], layer[i + 1]))
                else:
                    # Odd node is promoted as-is
                    next_layer.append(layer[i])
            levels.append(next_layer)
            layer = next_layer
        return levels

    @property
    def root(self) -> bytes:
        """32-byte root hash."""
        return self.levels[-1][0]

    @property
    def hex_root(self) -> str:
        return bytes_to_hex(self.root)

    def prove(self, leaf: Leaf) -> List[bytes]:
        """
        Generate a Merkle proof for a leaf.
        
        Args:
            leaf: Leaf to prove
            
        Returns:
            Sibling hashes, bottom-up. Levels where the node was promoted
            contribute nothing.
            
        Raises:
            LeafNotFoundError: If the leaf is not in the tree
        """
        idx = self._index.get(leaf.hash())
        if idx is None:
            raise LeafNotFoundError(f"Leaf ({leaf.owner}, {leaf.amount}) not in tree")

        proof = []
        for layer in self.levels[:-1]:
            sibling_idx = idx ^ 1
            if sibling_idx < len(layer):
                proof.append(layer[sibling_idx])
            idx //= 2
        return proof

    def verify(self, leaf: Leaf, proof: Sequence[bytes]) -> bool:
        """Verify a proof for leaf against this tree's root."""
        return verify_proof(proof, leaf.hash(), self.root)

    def __len__(self) -> int:
        return len(self.leaves)

    def __contains__(self, leaf: Leaf) -> bool:
        return leaf.hash() in self._index
