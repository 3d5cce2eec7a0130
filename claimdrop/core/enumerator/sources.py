"""
Item sources - readers of the external item -> owner ledger.

A source answers two questions: how many item IDs exist (total_supply) and
who owns a given item (owner_of). Methods may be plain or async; the
enumerator handles both.

Sources:
- InMemoryItemRegistry: local registry used by tests, the demo, and the
  push path's range resolution
- RpcItemSource: EVM JSON-RPC reader (totalSupply() / ownerOf(uint256))
"""

import itertools
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import aiohttp

from claimdrop.crypto import ZERO_ADDRESS, encode_uint256, keccak256, normalize_address
from claimdrop.core.errors import ClaimdropError, ItemNotFoundError
from claimdrop.utils.logger import get_logger

logger = get_logger("enumerator.source")


@runtime_checkable
class ItemSource(Protocol):
    """Read-only view of an enumerable item ledger."""

    def total_supply(self) -> Any:
        ...

    def owner_of(self, item_id: int) -> Any:
        ...


# =============================================================================
# In-memory registry
# =============================================================================


class InMemoryItemRegistry:
    """
    Minimal enumerable item registry.
    
    Item IDs are issued sequentially from first_item_id. Burned IDs are never
    reissued, so total_supply() reports issued IDs and owner_of() returns None
    for burned ones.
    """

    def __init__(self, first_item_id: int = 1):
        self.first_item_id = first_item_id
        self._owners: Dict[int, str] = {}
        self._next_id = first_item_id

    @classmethod
    def from_mapping(cls, owners: Dict[int, str], first_item_id: int = 1) -> "InMemoryItemRegistry":
        """Registry holding exactly the given item -> owner mapping; gaps read as burned."""
        registry = cls(first_item_id=first_item_id)
        for item_id, owner in owners.items():
            item_id = int(item_id)
            if item_id < first_item_id:
                raise ValueError(f"Item {item_id} is below first_item_id {first_item_id}")
            registry._owners[item_id] = normalize_address(owner)
        if registry._owners:
            registry._next_id = max(registry._owners) + 1
        return registry

    def mint(self, owner: str) -> int:
        item_id = self._next_id
        self._owners[item_id] = normalize_address(owner)
        self._next_id += 1
        return item_id

    def burn(self, item_id: int) -> None:
        if item_id not in self._owners:
            raise ItemNotFoundError(f"Item {item_id} does not exist")
        del self._owners[item_id]

    def transfer(self, item_id: int, new_owner: str) -> None:
        if item_id not in self._owners:
            raise ItemNotFoundError(f"Item {item_id} does not exist")
        self._owners[item_id] = normalize_address(new_owner)

    def total_supply(self) -> int:
        return self._next_id - self.first_item_id

    def owner_of(self, item_id: int) -> Optional[str]:
        return self._owners.get(item_id)

    def __len__(self) -> int:
        return len(self._owners)


# =============================================================================
# JSON-RPC source
# =============================================================================


class RpcError(ClaimdropError):
    """JSON-RPC transport or node error."""


class RpcRevertError(RpcError):
    """The eth_call reverted (e.g. ownerOf on a burned item)."""


def function_selector(signature: str) -> str:
    """First 4 bytes of keccak256(signature), hex-encoded with 0x."""
    return "0x" + keccak256(signature.encode()).hex()[:8]


TOTAL_SUPPLY_SELECTOR = function_selector("totalSupply()")
OWNER_OF_SELECTOR = function_selector("ownerOf(uint256)")


def encode_owner_of(item_id: int) -> str:
    """Call data for ownerOf(item_id)."""
    return OWNER_OF_SELECTOR + encode_uint256(item_id).hex()


def decode_uint256(result: str) -> int:
    if result in ("0x", ""):
        raise RpcError("Empty eth_call result")
    return int(result, 16)


def decode_address(result: str) -> str:
    """Address from a 32-byte ABI word (last 20 bytes)."""
    data = result[2:] if result.startswith("0x") else result
    if len(data) != 64:
        raise RpcError(f"Expected 32-byte word, got {len(data) // 2} bytes")
    return normalize_address("0x" + data[-40:])


class RpcItemSource:
    """
    Reads an ERC-721 style contract over EVM JSON-RPC.
    
    Usage:
        async with RpcItemSource(rpc_url, contract) as source:
            enumerator = OwnershipEnumerator(source)
            snapshot = await enumerator.enumerate()
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.rpc_url = rpc_url
        self.contract_address = normalize_address(contract_address)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "RpcItemSource":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _eth_call(self, data: str) -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": self.contract_address, "data": data}, "latest"],
        }
        session = self._get_session()
        async with session.post(self.rpc_url, json=payload) as response:
            if response.status != 200:
                raise RpcError(f"HTTP {response.status} from {self.rpc_url}")
            body = await response.json()

        error = body.get("error")
        if error:
            message = str(error.get("message", error) if isinstance(error, dict) else error)
            if "revert" in message.lower():
                raise RpcRevertError(message)
            raise RpcError(message)
        if "result" not in body:
            raise RpcError(f"Malformed JSON-RPC response: {body}")
        return body["result"]

    async def total_supply(self) -> int:
        return decode_uint256(await self._eth_call(TOTAL_SUPPLY_SELECTOR))

    async def owner_of(self, item_id: int) -> Optional[str]:
        try:
            owner = decode_address(await self._eth_call(encode_owner_of(item_id)))
        except RpcRevertError:
            logger.debug(f"ownerOf({item_id}) reverted; treating as non-existent")
            return None
        return None if owner == ZERO_ADDRESS else owner
