"""
Unit tests for the pull (claim) path.

Tests cover:
1. Successful claims against the committed root
2. Check ordering (pause, replay, amount, root, proof)
3. Proof parsing
4. Root replacement invalidating old proofs
5. Rollback on failed transfer
"""

import pytest

from claimdrop.core.claim import ClaimVerifier, parse_proof
from claimdrop.core.commitment import build_snapshot
from claimdrop.core.errors import (
    AlreadyClaimedError,
    InsufficientReservedError,
    InvalidAmountError,
    InvalidProofError,
    NoRootError,
    PausedError,
    TransferFailedError,
)
from claimdrop.core.ledger import DistributionLedger, InMemoryToken, PayoutPath
from claimdrop.crypto import bytes_to_hex, keccak256


AUTHORITY = "0x" + "aa" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
MALLORY = "0x" + "ee" * 20


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def snapshot():
    """ALICE holds 2 items, BOB 1, CAROL 1; 50 per item."""
    ownership = {1: ALICE, 2: BOB, 3: ALICE, 4: CAROL}
    return build_snapshot(ownership, 50)


@pytest.fixture
def token():
    return InMemoryToken()


@pytest.fixture
def ledger(token, snapshot):
    tree, artifact = snapshot
    ledger = DistributionLedger(AUTHORITY, token)
    token.mint(ledger.address, artifact.total_amount)
    ledger.add_reserved(AUTHORITY, artifact.total_amount)
    ledger.update_root(AUTHORITY, tree.root)
    return ledger


@pytest.fixture
def verifier(ledger):
    return ClaimVerifier(ledger)


# =============================================================================
# Successful Claims
# =============================================================================


class TestClaim:
    """Tests for the happy path."""

    def test_claim_pays_committed_amount(self, verifier, ledger, token, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        assert entry.amount == 100

        verifier.claim(ALICE, entry.proof, entry.amount)

        assert token.balance_of(ALICE) == 100
        assert ledger.reserved == artifact.total_amount - 100
        assert ledger.claimed[ALICE.lower()] == PayoutPath.PULL

    def test_every_recipient_can_claim(self, verifier, ledger, token, snapshot):
        _, artifact = snapshot
        for address, entry in artifact.claims.items():
            verifier.claim(address, entry.proof, entry.amount)
            assert token.balance_of(address) == entry.amount
        assert ledger.reserved == 0

    def test_proof_as_bytes(self, verifier, token, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(BOB)
        verifier.claim(BOB, entry.proof_bytes(), entry.amount)
        assert token.balance_of(BOB) == 50

    def test_single_leaf_empty_proof(self, token):
        """A one-leaf tree has the leaf hash as root and an empty proof."""
        tree, artifact = build_snapshot({1: ALICE}, 10)
        ledger = DistributionLedger(AUTHORITY, token)
        token.mint(ledger.address, 10)
        ledger.add_reserved(AUTHORITY, 10)
        ledger.update_root(AUTHORITY, tree.root)

        ClaimVerifier(ledger).claim(ALICE, [], 10)
        assert token.balance_of(ALICE) == 10

    def test_verify_is_read_only(self, verifier, ledger, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(CAROL)
        assert verifier.verify(CAROL, entry.amount, entry.proof)
        assert not verifier.verify(CAROL, entry.amount + 1, entry.proof)
        assert not ledger.is_claimed(CAROL)


# =============================================================================
# Rejections
# =============================================================================


class TestClaimRejections:
    """Tests for every claim rejection path."""

    def test_replay_rejected(self, verifier, ledger, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        verifier.claim(ALICE, entry.proof, entry.amount)
        reserved = ledger.reserved

        with pytest.raises(AlreadyClaimedError):
            verifier.claim(ALICE, entry.proof, entry.amount)
        assert ledger.reserved == reserved

    def test_wrong_amount(self, verifier, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        with pytest.raises(InvalidProofError):
            verifier.claim(ALICE, entry.proof, entry.amount + 1)

    def test_someone_elses_proof(self, verifier, snapshot):
        """Mallory replaying Alice's proof does not reduce to the root."""
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        with pytest.raises(InvalidProofError):
            verifier.claim(MALLORY, entry.proof, entry.amount)

    def test_zero_amount(self, verifier):
        with pytest.raises(InvalidAmountError):
            verifier.claim(ALICE, [], 0)

    def test_no_root(self, token):
        ledger = DistributionLedger(AUTHORITY, token)
        with pytest.raises(NoRootError):
            ClaimVerifier(ledger).claim(ALICE, [], 10)

    def test_paused_checked_first(self, verifier, ledger, snapshot):
        """While paused even a valid claim fails with PausedError."""
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        ledger.set_paused(AUTHORITY, True)

        with pytest.raises(PausedError):
            verifier.claim(ALICE, entry.proof, entry.amount)
        # A zero amount would otherwise be InvalidAmount
        with pytest.raises(PausedError):
            verifier.claim(ALICE, entry.proof, 0)

    def test_replay_checked_before_proof(self, verifier, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        verifier.claim(ALICE, entry.proof, entry.amount)
        with pytest.raises(AlreadyClaimedError):
            verifier.claim(ALICE, [], 1)

    def test_underfunded(self, token, snapshot):
        tree, artifact = snapshot
        ledger = DistributionLedger(AUTHORITY, token)
        token.mint(ledger.address, 60)
        ledger.add_reserved(AUTHORITY, 60)
        ledger.update_root(AUTHORITY, tree.root)

        entry = artifact.proof_for(ALICE)
        with pytest.raises(InsufficientReservedError):
            ClaimVerifier(ledger).claim(ALICE, entry.proof, entry.amount)
        assert not ledger.is_claimed(ALICE)

    def test_failed_transfer_leaves_claim_open(self, verifier, ledger, token, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(BOB)
        token.failing_recipients.add(BOB)

        with pytest.raises(TransferFailedError):
            verifier.claim(BOB, entry.proof, entry.amount)
        assert not ledger.is_claimed(BOB)

        token.failing_recipients.clear()
        verifier.claim(BOB, entry.proof, entry.amount)
        assert token.balance_of(BOB) == 50


# =============================================================================
# Root Replacement
# =============================================================================


class TestRootReplacement:
    """Tests for claims across root updates."""

    def test_old_proofs_stop_verifying(self, verifier, ledger, snapshot):
        _, artifact = snapshot
        entry = artifact.proof_for(CAROL)
        new_tree, _ = build_snapshot({1: CAROL, 2: CAROL}, 50)
        ledger.update_root(AUTHORITY, new_tree.root)

        with pytest.raises(InvalidProofError):
            verifier.claim(CAROL, entry.proof, entry.amount)

    def test_claimed_survives_new_root(self, verifier, ledger, snapshot):
        """An address paid under one root cannot claim under the next."""
        _, artifact = snapshot
        entry = artifact.proof_for(ALICE)
        verifier.claim(ALICE, entry.proof, entry.amount)

        new_tree, new_artifact = build_snapshot({1: ALICE, 2: BOB}, 1)
        ledger.update_root(AUTHORITY, new_tree.root)
        new_entry = new_artifact.proof_for(ALICE)

        with pytest.raises(AlreadyClaimedError):
            verifier.claim(ALICE, new_entry.proof, new_entry.amount)


# =============================================================================
# Proof Parsing
# =============================================================================


class TestParseProof:
    """Tests for proof element conversion."""

    def test_hex_and_bytes_mix(self):
        a, b = keccak256(b"a"), keccak256(b"b")
        assert parse_proof([bytes_to_hex(a), b]) == [a, b]

    def test_empty(self):
        assert parse_proof([]) == []

    @pytest.mark.parametrize("proof", [
        ["0x1234"],
        ["not hex"],
        [b"\x00" * 31],
        "0x" + "00" * 32,
    ])
    def test_malformed(self, proof):
        with pytest.raises(InvalidProofError):
            parse_proof(proof)
