"""
claimdrop

Per-item reward distribution from a reserved token pool:
- Batched, retrying enumeration of item ownership
- Sorted-pair Merkle commitments with per-recipient proofs
- Pull claims (proof-based) and push batches (authority / scheduler)
- One ledger enforcing exactly-once payout, solvency, and an emergency pause
"""

__version__ = "0.1.0"
