"""
Assets - Transfer boundary for the currency and the auctioned unit.

The auction only ever moves value through two calls:
- collect(payer, amount): pull funds from a bidder into custody
- transfer(recipient, amount): pay out of custody

`InMemoryAsset` is a balance ledger implementing both, used by the CLI,
the factory and the tests. Any failure propagates to the caller.
"""

from collections import defaultdict
from typing import Dict, Protocol, runtime_checkable

from cca.core.errors import InsufficientFunds, InvalidAmount
from cca.utils.logger import get_logger

logger = get_logger("assets")


@runtime_checkable
class Asset(Protocol):
    """Anything the auction can collect and pay out."""
    symbol: str

    def collect(self, payer: str, amount: int) -> None:
        ...

    def transfer(self, recipient: str, amount: int) -> None:
        ...


class InMemoryAsset:
    """
    Fungible balance ledger with a custody account.

    Attributes:
        symbol: Display symbol
        custodian: Account holding collected funds (the auction)
        balances: Account -> balance
    """

    def __init__(self, symbol: str, custodian: str):
        self.symbol = symbol
        self.custodian = custodian
        self.balances: Dict[str, int] = defaultdict(int)
        self.total_supply = 0

    def mint(self, account: str, amount: int) -> None:
        """Create `amount` new units in `account`."""
        if amount < 0:
            raise InvalidAmount(f"Cannot mint negative amount {amount}")
        self.balances[account] += amount
        self.total_supply += amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def move(self, sender: str, recipient: str, amount: int) -> None:
        """Move `amount` between two accounts."""
        if amount < 0:
            raise InvalidAmount(f"Cannot move negative amount {amount}")
        available = self.balances.get(sender, 0)
        if available < amount:
            raise InsufficientFunds(
                f"{self.symbol}: {sender} has {available}, needs {amount}"
            )
        self.balances[sender] = available - amount
        self.balances[recipient] += amount

    def collect(self, payer: str, amount: int) -> None:
        """Pull `amount` from `payer` into custody."""
        self.move(payer, self.custodian, amount)
        logger.debug(f"{self.symbol}: collected {amount} from {payer[:10]}")

    def transfer(self, recipient: str, amount: int) -> None:
        """Pay `amount` out of custody."""
        if amount == 0:
            return
        self.move(self.custodian, recipient, amount)
        logger.debug(f"{self.symbol}: transferred {amount} to {recipient[:10]}")

    @property
    def custody_balance(self) -> int:
        return self.balance_of(self.custodian)
