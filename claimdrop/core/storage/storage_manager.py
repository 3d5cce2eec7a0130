from pathlib import Path
from typing import Dict, List, Optional, Tuple

from claimdrop.core.commitment.snapshot import SnapshotArtifact
from claimdrop.core.storage.sqlite_adapter import SQLiteAdapter
from claimdrop.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for the distributor.
    
    Coordinates data persistence using SQLite adapter.
    Handles:
    - Ledger scalar state (root, reserved, pause flag, last round)
    - Claimed set
    - Push payouts queued for retry
    - Snapshot artifacts for recipients to fetch proofs from
    """

    def __init__(self, data_dir: Path, db_name: str = "claimdrop.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Ledger Support
    # =========================================================================

    def save_ledger_state(self, values: Dict[str, str]):
        self.adapter.set_state(values)

    def record_claim(self, address: str, path: str, amount: int, state: Optional[Dict[str, str]] = None):
        """Store a payout, plus the ledger state after it, in one transaction."""
        self.adapter.save_claim(address, path, amount, state)

    def load_ledger_state(self) -> Tuple[Dict[str, str], List[Tuple[str, str]]]:
        """
        Load full ledger state.
        
        Returns:
            (state, claimed)
            state: key -> value for scalar fields
            claimed: List[(address, path)]
        """
        return self.adapter.get_state(), self.adapter.get_all_claims()

    # =========================================================================
    # Push Retry Queue
    # =========================================================================

    def queue_failed_payout(self, address: str, amount: int):
        self.adapter.save_failed_payout(address, amount)

    def clear_failed_payout(self, address: str):
        self.adapter.delete_failed_payout(address)

    def load_failed_payouts(self) -> Dict[str, int]:
        return self.adapter.get_failed_payouts()

    # =========================================================================
    # Snapshots
    # =========================================================================

    def save_snapshot(self, artifact: SnapshotArtifact):
        self.adapter.save_snapshot(artifact.root, artifact.model_dump_json(), artifact.created_at)
        logger.info(f"Stored snapshot {artifact.root[:18]}... ({len(artifact.claims)} recipients)")

    def load_snapshot(self, root: str) -> Optional[SnapshotArtifact]:
        data = self.adapter.get_snapshot(root.lower())
        return SnapshotArtifact.model_validate_json(data) if data else None

    def latest_snapshot(self) -> Optional[SnapshotArtifact]:
        data = self.adapter.get_latest_snapshot()
        return SnapshotArtifact.model_validate_json(data) if data else None
