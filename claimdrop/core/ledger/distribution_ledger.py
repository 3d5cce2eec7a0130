"""
Distribution Ledger - authoritative state for reward payouts.

Conceptual Background:
---------------------
The ledger holds the only persistent shared state of the system:

1. **Merkle Root**: commitment to the current snapshot's (owner, amount) leaves
2. **Reserved Pool**: part of the token balance earmarked for payouts
3. **Claimed Set**: every address ever paid, through either path
4. **Pause Flag**: emergency gate on all value-moving operations
5. **Last Round Timestamp**: start of the push-round cooldown

Invariants:
----------
- reserved <= token balance after every operation
- an address is paid at most once, ever (claimed entries are never removed,
  even when the root is replaced)
- ledger mutation precedes the external transfer; a failed transfer reverts
  the mutation

Execution Model:
---------------
Every mutating operation runs inside atomic(): a lock serializes units
across threads, and re-entering from the thread that holds it (e.g. from a
token transfer callback) raises ReentrancyError.
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from claimdrop.crypto import bytes_to_hex, hex_to_bytes, normalize_address
from claimdrop.core.errors import (
    AlreadyClaimedError,
    DirectTransferRejected,
    InsufficientBalanceError,
    InsufficientReservedError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidRootError,
    PausedError,
    ReentrancyError,
    TransferFailedError,
    UnauthorizedError,
)
from claimdrop.core.ledger.events import (
    EmergencyWithdrawal,
    EventLog,
    Payout,
    PayoutPath,
    ReservedAdded,
    RootUpdated,
    StatusChanged,
)
from claimdrop.core.ledger.token import TokenVault
from claimdrop.core.storage.storage_manager import StorageManager
from claimdrop.utils.logger import get_logger
from claimdrop.utils.validation import validate_address, validate_amount, validate_hash

logger = get_logger("ledger")

DEFAULT_LEDGER_ADDRESS = "0x" + "d1" * 20


class DistributionLedger:
    """
    Reserved-pool ledger shared by the pull and push payout paths.

    Attributes:
        authority: Controlling address for administrative operations
        address: The ledger's own address (holder of the token balance)
        token: TokenVault that holds and moves the reward token
        merkle_root: Current root, or None before the first update
        reserved: Tokens earmarked for payouts
        claimed: address -> PayoutPath that paid it
        paused: Emergency gate
        last_round_timestamp: Completion time of the last push round
        events: Audit trail
    """

    def __init__(
        self,
        authority: str,
        token: TokenVault,
        address: str = DEFAULT_LEDGER_ADDRESS,
        clock: Callable[[], float] = time.time,
        storage_manager: Optional[StorageManager] = None,
    ):
        """
        Initialize the ledger.

        Args:
            authority: Controlling authority address
            token: Token vault holding the reward balance
            address: Address the ledger holds tokens under
            clock: Time source (seconds); injectable for tests
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.authority = _address(authority, "authority")
        self.address = _address(address, "address")
        self.token = token
        self.clock = clock

        self.merkle_root: Optional[bytes] = None
        self.reserved: int = 0
        self.claimed: Dict[str, PayoutPath] = {}
        self.paused: bool = False
        self.last_round_timestamp: float = 0.0

        self.events = EventLog()

        self._lock = threading.Lock()
        self._owner: Optional[int] = None

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # Serialized execution
    # =========================================================================

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run one mutating unit.

        Raises:
            ReentrancyError: If the calling thread is already inside a unit
        """
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrancyError("Re-entrant call rejected: an operation is already in flight")
        with self._lock:
            self._owner = me
            try:
                yield
            finally:
                self._owner = None

    def _require_unit(self) -> None:
        if self._owner != threading.get_ident():
            raise RuntimeError("Ledger mutation outside atomic()")

    def require_authority(self, caller: str) -> None:
        """Raise UnauthorizedError unless caller is the authority."""
        if _normalize_or_none(caller) != self.authority:
            raise UnauthorizedError(f"{caller} is not the authority")

    def require_active(self) -> None:
        """Raise PausedError while paused."""
        if self.paused:
            raise PausedError("Distribution is paused")

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def balance(self) -> int:
        """Token balance held by the ledger."""
        return self.token.balance_of(self.address)

    @property
    def hex_root(self) -> Optional[str]:
        return bytes_to_hex(self.merkle_root) if self.merkle_root is not None else None

    def is_claimed(self, address: str) -> bool:
        return _normalize_or_none(address) in self.claimed

    # =========================================================================
    # Administrative operations (authority-only, not pause-gated)
    # =========================================================================

    def update_root(self, caller: str, root: bytes) -> None:
        """
        Replace the Merkle root.

        Proofs against the old root stop verifying the moment this returns.
        Claimed entries are kept, so no address can be paid again under a
        new root.
        """
        self.require_authority(caller)
        is_valid, error = validate_hash(root, "root")
        if not is_valid:
            raise InvalidRootError(error)

        with self.atomic():
            old_root = self.merkle_root
            self.merkle_root = bytes(root)
            self.events.emit(RootUpdated(old_root=old_root, new_root=self.merkle_root))
            self._persist_state()

    def add_reserved(self, caller: str, amount: int) -> None:
        """
        Earmark tokens already held by the ledger.

        Raises:
            InvalidAmountError: If amount is not positive
            InsufficientBalanceError: If balance < reserved + amount
        """
        self.require_authority(caller)
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmountError(error)

        with self.atomic():
            balance = self.balance
            if balance < self.reserved + amount:
                raise InsufficientBalanceError(
                    f"Balance {balance} does not cover reserved {self.reserved} + {amount}"
                )
            self.reserved += amount
            self.events.emit(ReservedAdded(amount=amount, reserved=self.reserved))
            self._persist_state()

    def emergency_withdraw(self, caller: str, amount: int) -> None:
        """
        Move tokens straight to the authority, bypassing payout accounting.

        The claimed set is untouched. reserved is lowered only as far as
        needed to stay within the remaining balance.
        """
        self.require_authority(caller)
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmountError(error)

        with self.atomic():
            balance = self.balance
            if amount > balance:
                raise InsufficientBalanceError(f"Withdrawal {amount} exceeds balance {balance}")

            reserved_before = self.reserved
            self.reserved = min(self.reserved, balance - amount)
            mark = self.events.mark()
            self.events.emit(EmergencyWithdrawal(
                recipient=self.authority,
                amount=amount,
                reserved_before=reserved_before,
                reserved_after=self.reserved,
            ))

            if not self._transfer(self.authority, amount):
                self.reserved = reserved_before
                self.events.revert_to(mark)
                raise TransferFailedError(f"Emergency withdrawal of {amount} failed")

            self._persist_state()

    def set_paused(self, caller: str, paused: bool) -> None:
        """Set the pause flag (idempotent); always emits StatusChanged."""
        self.require_authority(caller)
        with self.atomic():
            self.paused = paused
            self.events.emit(StatusChanged(paused=paused))
            self._persist_state()

    def receive(self, sender: str, amount: int) -> None:
        """Value sent outside the funding path is refused."""
        raise DirectTransferRejected(
            f"Direct transfer of {amount} from {sender} rejected; fund the token balance and call add_reserved"
        )

    # =========================================================================
    # Shared payout interface (pull and push)
    # =========================================================================

    def check_payout(self, recipient: str, amount: int) -> None:
        """
        Guard shared by both payout paths. Mutates nothing.

        Raises:
            PausedError, InvalidAmountError, AlreadyClaimedError,
            InsufficientReservedError, InsufficientBalanceError
        """
        self.require_active()
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmountError(error)
        if recipient in self.claimed:
            raise AlreadyClaimedError(f"{recipient} has already been paid")
        self.check_solvency(amount)

    def check_solvency(self, amount: int) -> None:
        if self.reserved < amount:
            raise InsufficientReservedError(f"Reserved {self.reserved} < {amount}")
        balance = self.balance
        if balance < amount:
            raise InsufficientBalanceError(f"Balance {balance} < {amount}")

    def pay_out(self, recipient: str, amount: int, path: PayoutPath) -> None:
        """
        Pay one recipient. Must be called inside atomic().

        Sequence: guard, mark claimed, debit reserved, emit Payout, transfer.
        If the transfer fails all three mutations are reverted.

        Raises:
            TransferFailedError: If the token transfer fails
        """
        self._require_unit()
        recipient = _address(recipient, "recipient")
        self.check_payout(recipient, amount)

        mark = self.events.mark()
        self.claimed[recipient] = path
        self.reserved -= amount
        self.events.emit(Payout(recipient=recipient, amount=amount, path=path))

        if not self._transfer(recipient, amount):
            del self.claimed[recipient]
            self.reserved += amount
            self.events.revert_to(mark)
            raise TransferFailedError(f"Transfer of {amount} to {recipient} failed")

        if self.storage_manager:
            self.storage_manager.record_claim(recipient, path.value, amount, self._state_values())

    def record_round(self, timestamp: float) -> None:
        """Advance last_round_timestamp (never moves backwards)."""
        self._require_unit()
        self.last_round_timestamp = max(self.last_round_timestamp, timestamp)
        self._persist_state()

    def _transfer(self, recipient: str, amount: int) -> bool:
        try:
            return bool(self.token.transfer(self.address, recipient, amount))
        except Exception as exc:
            logger.error(f"Transfer of {amount} to {recipient} raised: {exc}")
            return False

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """Load state from storage manager."""
        state, claimed = self.storage_manager.load_ledger_state()

        if state.get("merkle_root"):
            self.merkle_root = hex_to_bytes(state["merkle_root"])
        self.reserved = int(state.get("reserved", 0))
        self.paused = state.get("paused") == "1"
        self.last_round_timestamp = float(state.get("last_round_timestamp", 0.0))

        for address, path in claimed:
            self.claimed[address] = PayoutPath(path)

        logger.info(f"Loaded ledger: reserved={self.reserved}, claimed={len(self.claimed)}, paused={self.paused}")

    def _state_values(self) -> Dict[str, str]:
        return {
            "merkle_root": self.hex_root or "",
            "reserved": str(self.reserved),
            "paused": "1" if self.paused else "0",
            "last_round_timestamp": repr(self.last_round_timestamp),
        }

    def _persist_state(self) -> None:
        if self.storage_manager:
            self.storage_manager.save_ledger_state(self._state_values())

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"DistributionLedger(reserved={self.reserved}, claimed={len(self.claimed)}, paused={self.paused})"

    def stats(self) -> dict:
        """Get ledger statistics."""
        return {
            "merkle_root": self.hex_root,
            "reserved": self.reserved,
            "balance": self.balance,
            "claimed_count": len(self.claimed),
            "pull_claims": sum(1 for p in self.claimed.values() if p == PayoutPath.PULL),
            "push_payouts": sum(1 for p in self.claimed.values() if p == PayoutPath.PUSH),
            "paused": self.paused,
            "last_round_timestamp": self.last_round_timestamp,
        }


def _address(value: str, name: str) -> str:
    is_valid, error = validate_address(value, name)
    if not is_valid:
        raise InvalidAddressError(error)
    return normalize_address(value)


def _normalize_or_none(value: str) -> Optional[str]:
    try:
        return normalize_address(value)
    except (TypeError, ValueError):
        return None
