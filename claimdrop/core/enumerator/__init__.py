"""Batched, retrying enumeration of item ownership"""
from claimdrop.core.enumerator.ownership import (
    DEFAULT_BATCH_SIZE,
    OwnershipEnumerator,
    OwnershipSnapshot,
)
from claimdrop.core.enumerator.retry import RetryPolicy
from claimdrop.core.enumerator.sources import (
    InMemoryItemRegistry,
    ItemSource,
    RpcError,
    RpcItemSource,
    RpcRevertError,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "OwnershipEnumerator",
    "OwnershipSnapshot",
    "RetryPolicy",
    "InMemoryItemRegistry",
    "ItemSource",
    "RpcError",
    "RpcRevertError",
    "RpcItemSource",
]
