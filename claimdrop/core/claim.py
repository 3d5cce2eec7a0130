"""
Claim Verifier - the pull payout path.

A recipient submits the proof from the snapshot artifact together with their
amount. The leaf (caller, amount) is rebuilt, the proof is folded with the
same sorted-pair hashing used to build the tree, and the result must equal
the root currently on the ledger.

Checks run in order, all before any mutation:
1. Not paused
2. Caller not already paid (by either path)
3. Amount > 0
4. A root is committed
5. Proof reduces to that root
6. Reserved pool and balance cover the amount (shared ledger guard)
"""

from typing import List, Sequence, Union

from claimdrop.crypto import hex_to_bytes
from claimdrop.core.commitment.merkle import Leaf, verify_proof
from claimdrop.core.errors import (
    AlreadyClaimedError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidProofError,
    NoRootError,
)
from claimdrop.core.ledger import DistributionLedger, PayoutPath
from claimdrop.utils.logger import get_logger
from claimdrop.utils.validation import validate_amount, validate_proof

logger = get_logger("claim")

ProofElement = Union[bytes, str]


def parse_proof(proof: Sequence[ProofElement]) -> List[bytes]:
    """
    Convert proof elements (bytes or 0x hex) to 32-byte hashes.
    
    Raises:
        InvalidProofError: If any element is malformed
    """
    if isinstance(proof, (str, bytes)):
        raise InvalidProofError("proof must be a list of hashes")

    try:
        parsed = [hex_to_bytes(p) if isinstance(p, str) else p for p in proof]
    except (TypeError, ValueError) as exc:
        raise InvalidProofError(f"Malformed proof element: {exc}") from exc

    is_valid, error = validate_proof(parsed)
    if not is_valid:
        raise InvalidProofError(error)
    return parsed


class ClaimVerifier:
    """
    Validates Merkle proofs and pays claimants through the shared ledger.
    """

    def __init__(self, ledger: DistributionLedger):
        self.ledger = ledger

    def verify(self, owner: str, amount: int, proof: Sequence[ProofElement]) -> bool:
        """Read-only check that (owner, amount) is in the current root."""
        if self.ledger.merkle_root is None:
            return False
        try:
            leaf = Leaf(owner, amount)
            parsed = parse_proof(proof)
        except (InvalidAddressError, InvalidAmountError, InvalidProofError):
            return False
        return verify_proof(parsed, leaf.hash(), self.ledger.merkle_root)

    def claim(self, caller: str, proof: Sequence[ProofElement], amount: int) -> None:
        """
        Claim the caller's committed reward.
        
        Args:
            caller: Claimant address (the leaf owner)
            proof: Sibling hashes from the snapshot artifact
            amount: Committed amount for the caller
            
        Raises:
            PausedError, AlreadyClaimedError, InvalidAmountError, NoRootError,
            InvalidProofError, InsufficientReservedError,
            InsufficientBalanceError, TransferFailedError, ReentrancyError
        """
        ledger = self.ledger
        with ledger.atomic():
            ledger.require_active()

            if ledger.is_claimed(caller):
                raise AlreadyClaimedError(f"{caller} has already claimed")

            is_valid, error = validate_amount(amount)
            if not is_valid:
                raise InvalidAmountError(error)

            if ledger.merkle_root is None:
                raise NoRootError("No Merkle root committed")

            leaf = Leaf(caller, amount)
            if not verify_proof(parse_proof(proof), leaf.hash(), ledger.merkle_root):
                logger.warning(f"Rejected claim from {leaf.owner}: proof does not match root")
                raise InvalidProofError(f"Proof for ({leaf.owner}, {amount}) does not match current root")

            ledger.pay_out(leaf.owner, amount, PayoutPath.PULL)

        logger.info(f"Claimed {amount} by {leaf.owner}")
