"""
Cryptographic primitives for claimdrop.

This module provides:
- Keccak-256 hashing
- Address normalization and conversion (EVM-style 20-byte addresses)
- Fixed-width integer encoding for leaf hashing

Design Notes:
-------------
Leaves are hashed as keccak256(address || uint256(amount)) with packed
encoding, so roots and proofs produced here verify against the same
sorted-pair algorithm an EVM distributor contract uses.
"""

import re

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20
HASH_SIZE = 32
UINT256_MAX = 2**256 - 1

ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).
    
    Used for: leaf hashing, Merkle nodes, ABI function selectors.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Encoding
# =============================================================================


def encode_uint256(value: int) -> bytes:
    """
    Encode an unsigned integer as 32 big-endian bytes.
    
    Raises:
        ValueError: If value is negative or does not fit in 256 bits
    """
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"Value {value} out of uint256 range")
    return value.to_bytes(32, byteorder="big")


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def normalize_address(address: str) -> str:
    """
    Normalize an address to lower-case 0x-prefixed hex.
    
    Raises:
        ValueError: If the address is not 20 bytes of hex
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()


def address_to_bytes(address: str) -> bytes:
    """Convert a 0x-prefixed address to its 20 raw bytes."""
    return hex_to_bytes(normalize_address(address))
