"""
Validation Hooks - Optional read-only gate on bid submission.

A hook sees the bid parameters once per submission, before any demand is
registered, and answers pass (True) or fail (False). A failure aborts the
submission.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class BidParameters:
    """What a validation hook gets to see."""
    max_price: int
    exact_in: bool
    amount: int
    owner: str
    sender: str
    block: int
    hook_data: bytes = b""


@runtime_checkable
class ValidationHook(Protocol):
    """Read-only predicate over a bid submission."""

    def validate(self, params: BidParameters) -> bool:
        ...


class AllowlistHook:
    """Accept bids only from listed owners."""

    def __init__(self, allowed: Iterable[str]):
        self.allowed = {address.lower() for address in allowed}

    def validate(self, params: BidParameters) -> bool:
        return params.owner.lower() in self.allowed


class MaxAmountHook:
    """Reject bids whose amount exceeds a cap (per side)."""

    def __init__(self, max_currency_in: Optional[int] = None, max_units_out: Optional[int] = None):
        self.max_currency_in = max_currency_in
        self.max_units_out = max_units_out

    def validate(self, params: BidParameters) -> bool:
        cap = self.max_currency_in if params.exact_in else self.max_units_out
        return cap is None or params.amount <= cap
