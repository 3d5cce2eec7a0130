"""
Input Validation - Checks applied to every external input.

Validators return (is_valid, error_message) so callers decide which typed
error to raise.
"""

from typing import Any, Tuple

from claimdrop.crypto import HASH_SIZE, UINT256_MAX, is_valid_address

# =============================================================================
# Constants
# =============================================================================

MAX_PROOF_LENGTH = 256      # Depth bound; 2**256 leaves is never reached
MAX_BATCH_LENGTH = 10_000

MIN_AMOUNT = 0
MAX_AMOUNT = UINT256_MAX


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: int,
) -> Tuple[bool, str]:
    """Validate bytes input of an exact length."""
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    return True, ""


def validate_hash(hash_value: Any, name: str = "hash") -> Tuple[bool, str]:
    """Validate a 32-byte hash value."""
    return validate_bytes(hash_value, name, expected_length=HASH_SIZE)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    if not is_valid_address(address):
        return False, f"{name} is not a valid address: {address!r}"
    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.
    
    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value
        
    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a strictly positive payout amount."""
    return validate_integer(amount, name, min_val=1)


def validate_proof(proof: Any) -> Tuple[bool, str]:
    """Validate a Merkle proof: a list of 32-byte sibling hashes."""
    if not isinstance(proof, (list, tuple)):
        return False, f"proof must be a list, got {type(proof).__name__}"

    if len(proof) > MAX_PROOF_LENGTH:
        return False, f"proof exceeds max length {MAX_PROOF_LENGTH}, got {len(proof)}"

    for i, sibling in enumerate(proof):
        is_valid, error = validate_hash(sibling, f"proof[{i}]")
        if not is_valid:
            return False, error

    return True, ""


def validate_batch(recipients: Any, amounts: Any) -> Tuple[bool, str]:
    """Validate a push batch: same-length, non-empty, bounded lists."""
    if len(recipients) != len(amounts):
        return False, f"recipients ({len(recipients)}) and amounts ({len(amounts)}) differ in length"

    if not recipients:
        return False, "batch is empty"

    if len(recipients) > MAX_BATCH_LENGTH:
        return False, f"batch exceeds max length {MAX_BATCH_LENGTH}, got {len(recipients)}"

    return True, ""
