"""
Error taxonomy for claimdrop.

Every error is raised before any ledger state is mutated:

- ValidationError: caller must correct the input
- AuthorizationError: caller is not allowed to invoke the operation
- StateConflictError: input is fine but the current state forbids it
- SolvencyError: reserved pool or token balance cannot cover the payout
- TransferFailedError: the token transfer itself failed; ledger rolled back
- EnumerationError: ownership reads kept failing after all retries
"""


class ClaimdropError(Exception):
    """Base class for all claimdrop errors."""


# =============================================================================
# Validation
# =============================================================================


class ValidationError(ClaimdropError):
    """Malformed or out-of-range input."""


class InvalidAmountError(ValidationError):
    """Amount is zero, negative, or not an integer."""


class InvalidProofError(ValidationError):
    """Proof is malformed or does not reduce to the current root."""


class InvalidAddressError(ValidationError):
    """Address is not a 0x-prefixed 20-byte hex string."""


class InvalidRootError(ValidationError):
    """Root is not a 32-byte hash."""


class LengthMismatchError(ValidationError):
    """Recipient and amount lists differ in length."""


class EmptyLeafSetError(ValidationError):
    """A Merkle tree cannot be built from zero leaves."""


class DuplicateLeafError(ValidationError):
    """The same owner appears with two different amounts."""


# =============================================================================
# Authorization
# =============================================================================


class AuthorizationError(ClaimdropError):
    """Caller lacks the required role."""


class UnauthorizedError(AuthorizationError):
    """Caller is not the controlling authority (or a registered scheduler)."""


# =============================================================================
# State conflicts
# =============================================================================


class StateConflictError(ClaimdropError):
    """Operation is not allowed in the current ledger state."""


class AlreadyClaimedError(StateConflictError):
    """Address has already received its payout."""


class PausedError(StateConflictError):
    """Value-moving operations are paused."""


class CooldownActiveError(StateConflictError):
    """A push round was attempted before the cooldown elapsed."""


class EmptyItemSetError(StateConflictError):
    """Nothing to distribute: no items or no eligible recipients."""


class NoRootError(StateConflictError):
    """No Merkle root has been committed yet."""


class ReentrancyError(StateConflictError):
    """A value-moving operation was re-entered while in flight."""


class DirectTransferRejected(StateConflictError):
    """Value was sent to the ledger outside the defined entry points."""


# =============================================================================
# Solvency
# =============================================================================


class SolvencyError(ClaimdropError):
    """The reserved pool or the token balance is too small."""


class InsufficientReservedError(SolvencyError):
    """Reserved pool does not cover the payout."""


class InsufficientBalanceError(SolvencyError):
    """Token balance does not cover the payout or funding."""


# =============================================================================
# Transfers and infrastructure
# =============================================================================


class TransferFailedError(ClaimdropError):
    """Token transfer returned failure or raised; ledger state was reverted."""


class EnumerationError(ClaimdropError):
    """An ownership read failed after all retry attempts."""


class ItemNotFoundError(ClaimdropError):
    """Item does not exist (never minted or burned)."""


class LeafNotFoundError(ClaimdropError):
    """Leaf is not part of the tree."""
