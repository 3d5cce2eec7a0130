"""
Token vault interface and an in-memory token.

The ledger never moves value itself; it asks a TokenVault to transfer from
the ledger's own address. transfer() reports success explicitly and every
caller must check it.
"""

from typing import Callable, Dict, Optional, Protocol, Set, runtime_checkable

from claimdrop.crypto import normalize_address


@runtime_checkable
class TokenVault(Protocol):
    def balance_of(self, address: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...


class InMemoryToken:
    """
    Simple fungible token.
    
    Attributes:
        balances: address -> balance
        failing_recipients: transfers to these addresses return False
        on_transfer: hook called before each transfer settles
            (sender, recipient, amount); used to simulate reentrancy
    """

    def __init__(self, symbol: str = "RWD"):
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self.failing_recipients: Set[str] = set()
        self.on_transfer: Optional[Callable[[str, str, int], None]] = None

    def mint(self, address: str, amount: int) -> None:
        address = normalize_address(address)
        self.balances[address] = self.balances.get(address, 0) + amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)

        if recipient in self.failing_recipients:
            return False
        if amount < 0 or self.balances.get(sender, 0) < amount:
            return False

        self.balances[sender] -= amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        return True
