"""
Ownership Enumerator - builds the {item_id -> owner} snapshot.

Reads the external item ledger in fixed-size batches:
1. Query total supply (with retry)
2. For each batch, look up every owner in parallel (with retry per read)
3. Batches run one after another to bound load on the ledger
4. Results are sorted by item ID, independent of response order

Any read that exhausts its retries aborts the whole enumeration; a partial
snapshot is never returned.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from claimdrop.core.enumerator.retry import RetryPolicy
from claimdrop.core.enumerator.sources import ItemSource
from claimdrop.core.errors import ItemNotFoundError
from claimdrop.crypto import normalize_address
from claimdrop.utils.logger import get_logger

logger = get_logger("enumerator")

DEFAULT_BATCH_SIZE = 100

T = TypeVar("T")


@dataclass
class OwnershipSnapshot:
    """
    Point-in-time ownership of every existing item.
    
    Attributes:
        owners: item_id -> owner, in ascending item ID order
        total_supply: Supply reported by the source
        missing: Item IDs in range that do not exist (burned / never minted)
    """
    owners: Dict[int, str]
    total_supply: int
    missing: List[int] = field(default_factory=list)

    @property
    def holder_count(self) -> int:
        return len(set(self.owners.values()))

    def __len__(self) -> int:
        return len(self.owners)


async def _call(method: Callable[..., Any], *args) -> Any:
    """Await async source methods; run sync ones in a worker thread."""
    if inspect.iscoroutinefunction(method):
        return await method(*args)
    return await asyncio.to_thread(method, *args)


class OwnershipEnumerator:
    """
    Paginated, retrying reader of an item -> owner ledger.
    
    Attributes:
        source: ItemSource to read from
        batch_size: Lookups issued in parallel per batch
        retry: RetryPolicy applied to every individual read
        first_item_id: First item ID in the enumerable range
    """

    def __init__(
        self,
        source: ItemSource,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry: Optional[RetryPolicy] = None,
        first_item_id: int = 1,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.source = source
        self.batch_size = batch_size
        self.retry = retry or RetryPolicy()
        self.first_item_id = first_item_id

    async def _owner_of(self, item_id: int) -> Optional[str]:
        try:
            owner = await self.retry.run(
                lambda: _call(self.source.owner_of, item_id),
                label=f"ownerOf({item_id})",
            )
        except ItemNotFoundError:
            return None
        return normalize_address(owner) if owner else None

    async def fetch_batch(self, start: int, end: int) -> Dict[int, Optional[str]]:
        """Look up owners for item IDs start..end (inclusive) in parallel."""
        ids = list(range(start, end + 1))
        owners = await asyncio.gather(*(self._owner_of(item_id) for item_id in ids))
        return dict(zip(ids, owners))

    async def total_supply(self) -> int:
        """Supply reported by the source (with retry)."""
        return int(await self.retry.run(lambda: _call(self.source.total_supply), label="totalSupply"))

    async def resolve_range(self, start: int, end: int) -> Tuple[Dict[int, str], List[int]]:
        """
        Resolve owners for item IDs start..end (inclusive), batch by batch.
        
        Returns:
            (owners, missing): item_id -> owner in ascending order, and the
            IDs that do not exist
            
        Raises:
            EnumerationError: If any read fails after all retries
        """
        owners: Dict[int, str] = {}
        missing: List[int] = []

        for batch_start in range(start, end + 1, self.batch_size):
            batch_end = min(batch_start + self.batch_size - 1, end)
            logger.info(f"Fetching item IDs {batch_start} to {batch_end}")

            batch = await self.fetch_batch(batch_start, batch_end)
            for item_id in sorted(batch):
                owner = batch[item_id]
                if owner is None:
                    missing.append(item_id)
                else:
                    owners[item_id] = owner

            logger.info(f"Fetched owners for item IDs {batch_start} to {batch_end}")

        if missing:
            logger.warning(f"Skipped {len(missing)} non-existent items")
        return owners, missing

    async def enumerate(self) -> OwnershipSnapshot:
        """
        Enumerate every item's owner.
        
        Returns:
            OwnershipSnapshot sorted by item ID
            
        Raises:
            EnumerationError: If any read fails after all retries
        """
        total = await self.total_supply()
        logger.info(f"Total items: {total}")

        owners, missing = await self.resolve_range(self.first_item_id, self.first_item_id + total - 1)
        logger.info(f"Fetched {len(owners)} item owners")

        return OwnershipSnapshot(owners=owners, total_supply=total, missing=missing)

    def run_sync(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an enumerator coroutine on a fresh event loop.
        
        Sources holding per-loop resources (an aiohttp session) are closed
        before the loop ends, so the next call opens its own.
        """
        async def run_and_release() -> T:
            try:
                return await operation()
            finally:
                close = getattr(self.source, "close", None)
                if close is not None and inspect.iscoroutinefunction(close):
                    await close()

        return asyncio.run(run_and_release())

    def enumerate_sync(self) -> OwnershipSnapshot:
        """Run enumerate() on a fresh event loop."""
        return self.run_sync(self.enumerate)
