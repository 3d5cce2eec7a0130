"""
Snapshot artifact - the off-ledger output of a snapshot round.

Turns an ownership snapshot {item_id -> owner} into leaves, builds the tree,
and packages the root with every recipient's amount and proof. The artifact is
what recipients download to call claim(); only its root goes on-ledger, via
publish_snapshot().
"""

import time
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from claimdrop.crypto import bytes_to_hex, hex_to_bytes, normalize_address
from claimdrop.core.commitment.merkle import Leaf, MerkleTree
from claimdrop.core.errors import EmptyItemSetError, InvalidAmountError, LeafNotFoundError
from claimdrop.utils.logger import get_logger

if TYPE_CHECKING:
    from claimdrop.core.enumerator import OwnershipEnumerator
    from claimdrop.core.ledger import DistributionLedger
    from claimdrop.core.storage import StorageManager

logger = get_logger("commitment")


class ClaimEntry(BaseModel):
    """One recipient's entitlement within a snapshot."""
    amount: int
    proof: List[str]
    item_ids: List[int] = Field(default_factory=list)

    def proof_bytes(self) -> List[bytes]:
        return [hex_to_bytes(p) for p in self.proof]


class SnapshotArtifact(BaseModel):
    """
    Root plus per-recipient proofs for one snapshot.
    
    Attributes:
        root: 0x-prefixed Merkle root
        reward_per_item: Reward paid per owned item
        item_count: Number of items included
        total_amount: Sum of all leaf amounts
        created_at: Unix timestamp of the build
        claims: address -> ClaimEntry
    """
    root: str
    reward_per_item: int
    item_count: int
    total_amount: int
    created_at: int = Field(default_factory=lambda: int(time.time()))
    claims: Dict[str, ClaimEntry]

    def proof_for(self, address: str) -> ClaimEntry:
        """Look up a recipient's entry."""
        entry = self.claims.get(normalize_address(address))
        if entry is None:
            raise LeafNotFoundError(f"{address} is not in snapshot {self.root}")
        return entry

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> "SnapshotArtifact":
        return cls.model_validate_json(Path(path).read_text())


def build_leaves(ownership: Mapping[int, str], reward_per_item: int) -> List[Leaf]:
    """
    Aggregate items per owner into (owner, amount) leaves.
    
    Each address gets one leaf, since an address can be paid only once.
    """
    if reward_per_item <= 0:
        raise InvalidAmountError(f"reward_per_item must be positive, got {reward_per_item}")

    counts: Dict[str, int] = defaultdict(int)
    for owner in ownership.values():
        counts[normalize_address(owner)] += 1

    return [Leaf(owner, count * reward_per_item) for owner, count in sorted(counts.items())]


def build_snapshot(
    ownership: Mapping[int, str],
    reward_per_item: int,
) -> Tuple[MerkleTree, SnapshotArtifact]:
    """
    Build the tree and artifact for an ownership snapshot.
    
    Args:
        ownership: item_id -> owner address
        reward_per_item: Reward per owned item
        
    Returns:
        (tree, artifact)
        
    Raises:
        EmptyItemSetError: If the snapshot holds no items
    """
    if not ownership:
        raise EmptyItemSetError("Ownership snapshot is empty")

    leaves = build_leaves(ownership, reward_per_item)
    tree = MerkleTree(leaves)

    items_by_owner: Dict[str, List[int]] = defaultdict(list)
    for item_id in sorted(ownership):
        items_by_owner[normalize_address(ownership[item_id])].append(item_id)

    claims = {
        leaf.owner: ClaimEntry(
            amount=leaf.amount,
            proof=[bytes_to_hex(p) for p in tree.prove(leaf)],
            item_ids=items_by_owner[leaf.owner],
        )
        for leaf in leaves
    }

    artifact = SnapshotArtifact(
        root=tree.hex_root,
        reward_per_item=reward_per_item,
        item_count=len(ownership),
        total_amount=sum(leaf.amount for leaf in leaves),
        claims=claims,
    )

    logger.info(
        f"Built snapshot: {len(ownership)} items, {len(leaves)} recipients, "
        f"total={artifact.total_amount}, root={artifact.root[:18]}..."
    )
    return tree, artifact


def publish_snapshot(
    ledger: "DistributionLedger",
    caller: str,
    enumerator: "OwnershipEnumerator",
    reward_per_item: int,
    storage: Optional["StorageManager"] = None,
) -> Tuple[MerkleTree, SnapshotArtifact]:
    """
    Enumerate ownership, build the tree, and rotate the ledger's root.
    
    The artifact is stored before the root goes live, so recipients can fetch
    proofs as soon as they verify. Nothing on the ledger changes unless every
    step before update_root succeeds.
    
    Args:
        ledger: Ledger whose root is replaced
        caller: Must be the ledger's authority
        enumerator: Reader of the item source
        reward_per_item: Reward per owned item
        storage: Optional StorageManager the artifact is saved to
        
    Returns:
        (tree, artifact)
        
    Raises:
        UnauthorizedError, EnumerationError, EmptyItemSetError,
        InvalidAmountError
    """
    ledger.require_authority(caller)

    ownership = enumerator.enumerate_sync()
    tree, artifact = build_snapshot(ownership.owners, reward_per_item)

    if storage is not None:
        storage.save_snapshot(artifact)
    ledger.update_root(caller, tree.root)

    logger.info(f"Published root {artifact.root[:18]}... ({len(ownership.missing)} items missing)")
    return tree, artifact
