import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from claimdrop.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.
    
    Provides:
    1. Ledger state (root, reserved, pause flag, last round) as key/value rows
    2. Claimed set (never deleted)
    3. Failed push payouts queued for retry
    4. Snapshot artifacts keyed by root
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Ledger state (scalar fields)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ledger_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 2. Claimed set
            conn.execute("""
                CREATE TABLE IF NOT EXISTS claimed (
                    address TEXT PRIMARY KEY,
                    path TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    claimed_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
                )
            """)

            # 3. Push payouts awaiting retry after a failed transfer
            conn.execute("""
                CREATE TABLE IF NOT EXISTS failed_payouts (
                    address TEXT PRIMARY KEY,
                    amount TEXT NOT NULL
                )
            """)

            # 4. Snapshot artifacts (off-ledger proofs)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    root TEXT PRIMARY KEY,
                    artifact TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_snapshot_ts ON snapshots(created_at);")

    def close(self):
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Ledger State Operations
    # =========================================================================

    def set_state(self, values: Dict[str, str]):
        """Write all scalar fields in one transaction."""
        conn = self._get_conn()
        with conn:
            conn.executemany(
                "INSERT OR REPLACE INTO ledger_state (key, value) VALUES (?, ?)",
                list(values.items())
            )

    def get_state(self) -> Dict[str, str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT key, value FROM ledger_state")
        return {row['key']: row['value'] for row in cursor}

    # =========================================================================
    # Claimed Set Operations
    # =========================================================================

    def save_claim(self, address: str, path: str, amount: int, state: Optional[Dict[str, str]] = None):
        """
        Mark an address as paid. Existing rows are kept.
        
        state, when given, is written in the same transaction so the claimed
        mark and the reserved debit land together. A queued failed payout for
        the address is dropped.
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR IGNORE INTO claimed (address, path, amount) VALUES (?, ?, ?)",
                (address, path, str(amount))
            )
            conn.execute("DELETE FROM failed_payouts WHERE address = ?", (address,))
            if state:
                conn.executemany(
                    "INSERT OR REPLACE INTO ledger_state (key, value) VALUES (?, ?)",
                    list(state.items())
                )

    def get_all_claims(self) -> List[Tuple[str, str]]:
        """Get all (address, path)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, path FROM claimed")
        return [(row['address'], row['path']) for row in cursor]

    # =========================================================================
    # Failed Payout Queue
    # =========================================================================

    def save_failed_payout(self, address: str, amount: int):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO failed_payouts (address, amount) VALUES (?, ?)",
                (address, str(amount))
            )

    def delete_failed_payout(self, address: str):
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM failed_payouts WHERE address = ?", (address,))

    def get_failed_payouts(self) -> Dict[str, int]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, amount FROM failed_payouts")
        return {row['address']: int(row['amount']) for row in cursor}

    # =========================================================================
    # Snapshot Operations
    # =========================================================================

    def save_snapshot(self, root: str, artifact_json: str, created_at: int):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO snapshots (root, artifact, created_at) VALUES (?, ?, ?)",
                (root, artifact_json, created_at)
            )

    def get_snapshot(self, root: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT artifact FROM snapshots WHERE root = ?", (root,))
        row = cursor.fetchone()
        return row['artifact'] if row else None

    def get_latest_snapshot(self) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT artifact FROM snapshots ORDER BY created_at DESC, rowid DESC LIMIT 1")
        row = cursor.fetchone()
        return row['artifact'] if row else None
