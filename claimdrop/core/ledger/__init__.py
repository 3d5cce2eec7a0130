"""Reserved-pool distribution ledger, events, and token vault"""
from claimdrop.core.ledger.distribution_ledger import DEFAULT_LEDGER_ADDRESS, DistributionLedger
from claimdrop.core.ledger.events import (
    EmergencyWithdrawal,
    EventLog,
    LedgerEvent,
    Payout,
    PayoutFailed,
    PayoutPath,
    ReservedAdded,
    RootUpdated,
    RoundCompleted,
    StatusChanged,
)
from claimdrop.core.ledger.token import InMemoryToken, TokenVault

__all__ = [
    "DEFAULT_LEDGER_ADDRESS",
    "DistributionLedger",
    "EmergencyWithdrawal",
    "EventLog",
    "LedgerEvent",
    "Payout",
    "PayoutFailed",
    "PayoutPath",
    "ReservedAdded",
    "RootUpdated",
    "RoundCompleted",
    "StatusChanged",
    "InMemoryToken",
    "TokenVault",
]
