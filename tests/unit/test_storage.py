"""
Unit tests for SQLite-backed storage.
"""

import sqlite3

import pytest

from claimdrop.core.commitment import build_snapshot
from claimdrop.core.storage import SQLiteAdapter, StorageManager


ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter(tmp_path / "db" / "test.db")
    yield adapter
    adapter.close()


@pytest.fixture
def storage(tmp_path):
    storage = StorageManager(tmp_path)
    yield storage
    storage.close()


# =============================================================================
# Adapter Tests
# =============================================================================


class TestSQLiteAdapter:
    """Tests for the raw adapter."""

    def test_creates_parent_dir(self, tmp_path, adapter):
        assert (tmp_path / "db" / "test.db").exists()

    def test_state_overwrite(self, adapter):
        adapter.set_state({"reserved": "10", "paused": "0"})
        adapter.set_state({"reserved": "7"})
        assert adapter.get_state() == {"reserved": "7", "paused": "0"}

    def test_claims_never_overwritten(self, adapter):
        """A second save for the same address keeps the first row."""
        adapter.save_claim(ALICE, "pull", 100)
        adapter.save_claim(ALICE, "push", 5)

        assert adapter.get_all_claims() == [(ALICE, "pull")]

    def test_claim_and_state_written_together(self, adapter):
        adapter.save_claim(ALICE, "pull", 100, {"reserved": "400", "paused": "0"})

        assert adapter.get_all_claims() == [(ALICE, "pull")]
        assert adapter.get_state() == {"reserved": "400", "paused": "0"}

    def test_claim_rolled_back_with_bad_state(self, adapter):
        """A state write that fails leaves no claimed row behind."""
        adapter.set_state({"reserved": "500"})

        with pytest.raises(sqlite3.Error):
            adapter.save_claim(ALICE, "pull", 100, {"reserved": object()})

        assert adapter.get_all_claims() == []
        assert adapter.get_state() == {"reserved": "500"}

    def test_failed_payout_queue(self, adapter):
        adapter.save_failed_payout(ALICE, 100)
        adapter.save_failed_payout(BOB, 20)
        adapter.save_failed_payout(BOB, 30)
        assert adapter.get_failed_payouts() == {ALICE: 100, BOB: 30}

        adapter.delete_failed_payout(ALICE)
        assert adapter.get_failed_payouts() == {BOB: 30}

    def test_claim_clears_queued_failure(self, adapter):
        adapter.save_failed_payout(BOB, 30)
        adapter.save_claim(BOB, "push", 30)
        assert adapter.get_failed_payouts() == {}

    def test_latest_snapshot(self, adapter):
        assert adapter.get_latest_snapshot() is None
        adapter.save_snapshot("0x01", "{\"a\": 1}", 100)
        adapter.save_snapshot("0x02", "{\"a\": 2}", 200)
        adapter.save_snapshot("0x03", "{\"a\": 3}", 150)

        assert adapter.get_latest_snapshot() == "{\"a\": 2}"
        assert adapter.get_snapshot("0x03") == "{\"a\": 3}"
        assert adapter.get_snapshot("0xff") is None


# =============================================================================
# Manager Tests
# =============================================================================


class TestStorageManager:
    """Tests for the storage manager."""

    def test_empty_state(self, storage):
        state, claimed = storage.load_ledger_state()
        assert state == {}
        assert claimed == []

    def test_ledger_state_roundtrip(self, storage):
        storage.save_ledger_state({"merkle_root": "", "reserved": "500"})
        storage.record_claim(BOB, "push", 50)

        state, claimed = storage.load_ledger_state()
        assert state["reserved"] == "500"
        assert claimed == [(BOB, "push")]

    def test_snapshot_storage(self, storage):
        _, artifact = build_snapshot({1: ALICE, 2: BOB, 3: BOB}, 10)
        storage.save_snapshot(artifact)

        loaded = storage.load_snapshot(artifact.root.upper().replace("0X", "0x"))
        assert loaded == artifact
        assert storage.latest_snapshot().proof_for(BOB).amount == 20

    def test_unknown_snapshot(self, storage):
        assert storage.load_snapshot("0x" + "00" * 32) is None
        assert storage.latest_snapshot() is None

    def test_reopen(self, tmp_path):
        first = StorageManager(tmp_path)
        first.record_claim(ALICE, "pull", 1)
        first.close()

        second = StorageManager(tmp_path)
        assert second.adapter.get_all_claims() == [(ALICE, "pull")]
        second.close()

    def test_failed_payouts_survive_reopen(self, tmp_path):
        first = StorageManager(tmp_path)
        first.queue_failed_payout(BOB, 100)
        first.close()

        second = StorageManager(tmp_path)
        assert second.load_failed_payouts() == {BOB: 100}
        second.clear_failed_payout(BOB)
        assert second.load_failed_payouts() == {}
        second.close()

    def test_record_claim_with_state(self, storage):
        storage.record_claim(ALICE, "pull", 40, {"reserved": "60"})

        state, claimed = storage.load_ledger_state()
        assert state == {"reserved": "60"}
        assert claimed == [(ALICE, "pull")]
