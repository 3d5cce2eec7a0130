"""
Ledger events - the audit trail of every committed mutation.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Type, TypeVar

from claimdrop.utils.logger import get_logger

logger = get_logger("events")


class PayoutPath(str, Enum):
    """Which path authorized a payout."""
    PULL = "pull"   # Recipient claim with Merkle proof
    PUSH = "push"   # Authority / scheduler batch


@dataclass
class LedgerEvent:
    timestamp: float = field(default_factory=time.time, kw_only=True)


@dataclass
class RootUpdated(LedgerEvent):
    old_root: Optional[bytes]
    new_root: bytes


@dataclass
class Payout(LedgerEvent):
    recipient: str
    amount: int
    path: PayoutPath


@dataclass
class PayoutFailed(LedgerEvent):
    recipient: str
    amount: int
    reason: str


@dataclass
class ReservedAdded(LedgerEvent):
    amount: int
    reserved: int


@dataclass
class EmergencyWithdrawal(LedgerEvent):
    recipient: str
    amount: int
    reserved_before: int
    reserved_after: int


@dataclass
class StatusChanged(LedgerEvent):
    paused: bool


@dataclass
class RoundCompleted(LedgerEvent):
    recipients_paid: int
    total_paid: int
    skipped: int
    failed: int


E = TypeVar("E", bound=LedgerEvent)


class EventLog:
    """Append-only event list with revert support for rolled-back units."""

    def __init__(self):
        self._events: List[LedgerEvent] = []

    def emit(self, event: LedgerEvent) -> None:
        self._events.append(event)
        logger.info(f"{type(event).__name__}: {_describe(event)}")

    def mark(self) -> int:
        """Position to revert to if the current unit fails."""
        return len(self._events)

    def revert_to(self, mark: int) -> None:
        """Drop events emitted after mark."""
        del self._events[mark:]

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]

    def last(self) -> Optional[LedgerEvent]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(self._events)


def _describe(event: LedgerEvent) -> str:
    parts = []
    for name, value in vars(event).items():
        if name == "timestamp":
            continue
        if isinstance(value, bytes):
            value = "0x" + value.hex()[:16] + "..."
        elif isinstance(value, Enum):
            value = value.value
        parts.append(f"{name}={value}")
    return ", ".join(parts)
