"""
Push Distributor - the authority / scheduler payout path.

Pays recipients directly, either from an explicit (recipient, amount) batch
or from an item-ID range resolved through the ownership enumerator
(reward_per_item per existing item; burned IDs are skipped).

Round Algorithm:
---------------
1. Resolve recipients; items of one owner aggregate into one payout, and a
   repeated address in an explicit batch is paid once
2. Sum the total for recipients not yet paid
3. Check reserved >= total and balance >= total once, upfront
4. Pay each recipient through the shared ledger payout; already-paid
   recipients are skipped, not fatal
5. A failed transfer rolls back that recipient only and is queued for retry
6. Record the round timestamp (starts the next cooldown)

Range resolution reads the item source with the enumerator's batching and
retry, before the ledger is touched: an exhausted read raises
EnumerationError and nothing is paid.

Scheduling:
----------
is_round_due() is a pure predicate an external scheduler can poll;
perform_round() re-checks it and runs the configured range.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from claimdrop.crypto import normalize_address
from claimdrop.core.enumerator import DEFAULT_BATCH_SIZE, OwnershipEnumerator, RetryPolicy
from claimdrop.core.enumerator.sources import ItemSource
from claimdrop.core.errors import (
    AlreadyClaimedError,
    CooldownActiveError,
    EmptyItemSetError,
    InvalidAddressError,
    InvalidAmountError,
    LengthMismatchError,
    PausedError,
    TransferFailedError,
    ValidationError,
)
from claimdrop.core.ledger import DistributionLedger, PayoutFailed, PayoutPath, RoundCompleted
from claimdrop.utils.logger import get_logger
from claimdrop.utils.validation import validate_address, validate_amount, validate_batch

logger = get_logger("push")


@dataclass
class DistributionResult:
    """Outcome of one push round."""
    paid: List[Tuple[str, int]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, int]] = field(default_factory=list)
    missing_items: List[int] = field(default_factory=list)

    @property
    def total_paid(self) -> int:
        return sum(amount for _, amount in self.paid)

    @property
    def recipients_paid(self) -> int:
        return len(self.paid)


class PushDistributor:
    """
    Batch payouts over the shared distribution ledger.

    Attributes:
        ledger: Shared DistributionLedger
        enumerator: OwnershipEnumerator over the item source, None without one
        reward_per_item: Amount paid per existing item
        cooldown: Minimum seconds between rounds
        round_range: Inclusive (start, end) for perform_round; None = full supply
        failed_payouts: address -> amount queued after a failed transfer
            (persisted through the ledger's storage manager, if any)
    """

    def __init__(
        self,
        ledger: DistributionLedger,
        registry: Optional[ItemSource] = None,
        reward_per_item: int = 0,
        cooldown: float = 0.0,
        round_range: Optional[Tuple[int, int]] = None,
        first_item_id: int = 1,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry: Optional[RetryPolicy] = None,
    ):
        if cooldown < 0:
            raise ValueError(f"cooldown must be >= 0, got {cooldown}")
        self.ledger = ledger
        self.enumerator = (
            OwnershipEnumerator(registry, batch_size, retry, first_item_id)
            if registry is not None else None
        )
        self.reward_per_item = reward_per_item
        self.cooldown = cooldown
        self.round_range = round_range
        self.first_item_id = first_item_id

        self.schedulers: Set[str] = set()
        self.failed_payouts: Dict[str, int] = {}

        if ledger.storage_manager:
            self.failed_payouts.update(ledger.storage_manager.load_failed_payouts())
            if self.failed_payouts:
                logger.info(f"Loaded {len(self.failed_payouts)} failed payouts awaiting retry")

    # =========================================================================
    # Access control
    # =========================================================================

    def set_scheduler(self, caller: str, scheduler: str, enabled: bool = True) -> None:
        """Allow (or revoke) an address to call perform_round()."""
        self.ledger.require_authority(caller)
        is_valid, error = validate_address(scheduler, "scheduler")
        if not is_valid:
            raise InvalidAddressError(error)
        scheduler = normalize_address(scheduler)
        if enabled:
            self.schedulers.add(scheduler)
        else:
            self.schedulers.discard(scheduler)

    def _require_operator(self, caller: str) -> None:
        try:
            if normalize_address(caller) in self.schedulers:
                return
        except ValueError:
            pass
        self.ledger.require_authority(caller)

    # =========================================================================
    # Scheduling
    # =========================================================================

    @property
    def next_round_at(self) -> float:
        return self.ledger.last_round_timestamp + self.cooldown

    def is_round_due(self) -> bool:
        """Pure predicate: cooldown elapsed and not paused."""
        return self.ledger.clock() >= self.next_round_at and not self.ledger.paused

    def _require_round_allowed(self) -> float:
        self.ledger.require_active()
        now = self.ledger.clock()
        if now < self.next_round_at:
            raise CooldownActiveError(
                f"Next round allowed at {self.next_round_at:.0f}, now {now:.0f}"
            )
        return now

    # =========================================================================
    # Operations
    # =========================================================================

    def distribute_batch(
        self,
        caller: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
    ) -> DistributionResult:
        """
        Pay an explicit recipient list.

        Raises:
            UnauthorizedError, LengthMismatchError, EmptyItemSetError,
            InvalidAddressError, InvalidAmountError, PausedError,
            CooldownActiveError, InsufficientReservedError,
            InsufficientBalanceError
        """
        self.ledger.require_authority(caller)

        if len(recipients) != len(amounts):
            raise LengthMismatchError(
                f"recipients ({len(recipients)}) and amounts ({len(amounts)}) differ in length"
            )
        if not recipients:
            raise EmptyItemSetError("Batch is empty")
        is_valid, error = validate_batch(recipients, amounts)
        if not is_valid:
            raise ValidationError(error)

        payouts = []
        for recipient, amount in zip(recipients, amounts):
            is_valid, error = validate_address(recipient, "recipient")
            if not is_valid:
                raise InvalidAddressError(error)
            is_valid, error = validate_amount(amount)
            if not is_valid:
                raise InvalidAmountError(error)
            payouts.append((normalize_address(recipient), amount))

        return self._run_round(payouts, label="batch")

    def distribute_range(self, caller: str, start: int, end: int) -> DistributionResult:
        """
        Pay reward_per_item for every existing item in start..end (inclusive).

        Raises:
            UnauthorizedError, ValidationError, EmptyItemSetError,
            EnumerationError, PausedError, CooldownActiveError,
            InsufficientReservedError, InsufficientBalanceError
        """
        self.ledger.require_authority(caller)
        return self._distribute_range((start, end))

    def perform_round(self, caller: str) -> DistributionResult:
        """
        Scheduled round over round_range (or the source's full supply).

        Raises:
            UnauthorizedError: If caller is neither authority nor scheduler
            PausedError / CooldownActiveError: If the round is not due
            EnumerationError: If the item source cannot be read
        """
        self._require_operator(caller)
        if not self.is_round_due():
            if self.ledger.paused:
                raise PausedError("Distribution is paused")
            raise CooldownActiveError(f"Round not due until {self.next_round_at:.0f}")

        logger.info(f"Performing scheduled round over {self.round_range or 'full supply'}")
        return self._distribute_range(self.round_range)

    def retry_failed(self, caller: str) -> DistributionResult:
        """
        Re-attempt payouts queued after failed transfers.

        Pause-gated like every payout, but not cooldown-gated and it does not
        start a new cooldown.
        """
        self.ledger.require_authority(caller)
        if not self.failed_payouts:
            raise EmptyItemSetError("No failed payouts queued")

        payouts = list(self.failed_payouts.items())
        with self.ledger.atomic():
            self.ledger.require_active()
            return self._pay(payouts, label="retry", now=None)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _resolve(self, bounds: Optional[Tuple[int, int]]) -> Tuple[int, int, Dict[int, str], List[int]]:
        """Resolve owners over bounds, or over the full supply when None."""
        if bounds is None:
            total = await self.enumerator.total_supply()
            if total <= 0:
                raise EmptyItemSetError("Item source holds no items")
            bounds = (self.first_item_id, self.first_item_id + total - 1)
        start, end = bounds
        owners, missing = await self.enumerator.resolve_range(start, end)
        return start, end, owners, missing

    def _distribute_range(self, bounds: Optional[Tuple[int, int]]) -> DistributionResult:
        if self.enumerator is None:
            raise EmptyItemSetError("No item source configured for range distribution")
        if bounds is not None:
            start, end = bounds
            if start < 0 or end < start:
                raise ValidationError(f"Invalid item range {start}..{end}")
        is_valid, error = validate_amount(self.reward_per_item, "reward_per_item")
        if not is_valid:
            raise InvalidAmountError(error)

        start, end, owners, missing = self.enumerator.run_sync(lambda: self._resolve(bounds))

        amounts: Dict[str, int] = {}
        for owner in owners.values():
            amounts[owner] = amounts.get(owner, 0) + self.reward_per_item

        if not amounts:
            raise EmptyItemSetError(f"No existing items in range {start}..{end}")

        result = self._run_round(list(amounts.items()), label=f"range {start}..{end}")
        result.missing_items = missing
        return result

    def _queue_failure(self, recipient: str, amount: int) -> None:
        self.failed_payouts[recipient] = amount
        if self.ledger.storage_manager:
            self.ledger.storage_manager.queue_failed_payout(recipient, amount)

    def _clear_failure(self, recipient: str) -> None:
        if self.failed_payouts.pop(recipient, None) is not None and self.ledger.storage_manager:
            self.ledger.storage_manager.clear_failed_payout(recipient)

    def _run_round(self, payouts: List[Tuple[str, int]], label: str) -> DistributionResult:
        with self.ledger.atomic():
            now = self._require_round_allowed()
            return self._pay(payouts, label=label, now=now)

    def _pay(
        self,
        payouts: List[Tuple[str, int]],
        label: str,
        now: Optional[float],
    ) -> DistributionResult:
        """Core loop. Runs inside ledger.atomic()."""
        ledger = self.ledger

        eligible: Dict[str, int] = {}
        for recipient, amount in payouts:
            if recipient in eligible or ledger.is_claimed(recipient):
                continue
            eligible[recipient] = amount

        total = sum(eligible.values())
        if total:
            ledger.check_solvency(total)

        result = DistributionResult()
        for recipient, amount in payouts:
            if ledger.is_claimed(recipient):
                result.skipped.append(recipient)
                self._clear_failure(recipient)
                logger.debug(f"Skipping {recipient}: already paid")
                continue
            try:
                ledger.pay_out(recipient, amount, PayoutPath.PUSH)
            except TransferFailedError as exc:
                self._queue_failure(recipient, amount)
                result.failed.append((recipient, amount))
                ledger.events.emit(PayoutFailed(recipient=recipient, amount=amount, reason=str(exc)))
                logger.error(f"Queued {recipient} for retry: {exc}")
                continue
            except AlreadyClaimedError:
                result.skipped.append(recipient)
                continue
            self._clear_failure(recipient)
            result.paid.append((recipient, amount))

        if now is not None:
            ledger.record_round(now)

        ledger.events.emit(RoundCompleted(
            recipients_paid=result.recipients_paid,
            total_paid=result.total_paid,
            skipped=len(result.skipped),
            failed=len(result.failed),
        ))
        logger.info(
            f"Push {label}: paid {result.recipients_paid} ({result.total_paid}), "
            f"skipped {len(result.skipped)}, failed {len(result.failed)}"
        )
        return result
