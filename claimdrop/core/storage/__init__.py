"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Distribution ledger state and the claimed set
- Snapshot artifacts (roots and per-recipient proofs)
"""

from claimdrop.core.storage.sqlite_adapter import SQLiteAdapter
from claimdrop.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
