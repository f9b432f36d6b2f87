"""
Bids - Records of demand placed in the auction and their settlement math.

A bid moves through SUBMITTED -> EXITED -> CLAIMED and nothing else.

Settlement is a pure function of two checkpoints: the running sums in each
checkpoint make the fill for any contiguous span of blocks a difference.

- Fully filled span (clearing price below the bid's max price): the bid
  spends its full share of every issued block at the clearing price.
- Clearing span (clearing price equal to the max price): the bid receives
  its pro-rata share of what the clearing tick was allotted.

Rounding: units paid to the bidder round down, currency charged rounds up
and never exceeds what the bid locked.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

from cca.core.auction.checkpoints import Checkpoint
from cca.core.fixed_point import MPS, Q96, mul_div, units_to_currency


# =============================================================================
# Enums
# =============================================================================


class BidStatus(IntEnum):
    """Lifecycle state of a bid."""
    SUBMITTED = 0
    EXITED = 1
    CLAIMED = 2


class ExitPath(IntEnum):
    """How a bid was settled on exit."""
    FULLY_FILLED = 0
    OUTBID = 1
    PARTIALLY_FILLED = 2
    REFUNDED = 3


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class Bid:
    """
    A bid and its settlement state.

    `amount` is currency for exact-in bids and units for exact-out bids.
    `effective_amount_q96` is that amount spread over the issuance that
    remained when the bid was placed, scaled by Q96.
    """
    bid_id: int
    owner: str
    max_price: int
    exact_in: bool
    amount: int
    start_block: int
    start_cumulative_mps: int
    effective_amount_q96: int
    locked_currency: int
    status: BidStatus = BidStatus.SUBMITTED
    exited_block: Optional[int] = None
    exit_path: Optional[ExitPath] = None
    tokens_filled: int = 0
    currency_spent: int = 0
    refunded: int = 0

    @property
    def is_exited(self) -> bool:
        return self.status != BidStatus.SUBMITTED

    def demand_units_q96(self, price: int) -> int:
        """Effective demand in Q96 units at `price`."""
        if self.exact_in:
            return mul_div(self.effective_amount_q96, Q96, price)
        return self.effective_amount_q96

    def to_dict(self) -> dict:
        return {
            "bid_id": self.bid_id,
            "owner": self.owner,
            "max_price": self.max_price,
            "exact_in": self.exact_in,
            "amount": self.amount,
            "start_block": self.start_block,
            "status": self.status.name,
            "exit_path": self.exit_path.name if self.exit_path is not None else None,
            "exited_block": self.exited_block,
            "tokens_filled": self.tokens_filled,
            "currency_spent": self.currency_spent,
            "refunded": self.refunded,
        }


# =============================================================================
# Amount Helpers
# =============================================================================


def required_currency(exact_in: bool, amount: int, max_price: int) -> int:
    """Currency a bid must lock: the amount itself, or units at max price."""
    if exact_in:
        return amount
    return units_to_currency(amount, max_price, round_up=True)


def effective_amount_q96(amount: int, start_cumulative_mps: int) -> int:
    """Spread `amount` over the issuance remaining after `start_cumulative_mps`."""
    return mul_div(amount * Q96, MPS, MPS - start_cumulative_mps)


# =============================================================================
# Settlement
# =============================================================================


def fully_filled(bid: Bid, lower: Checkpoint, upper: Checkpoint) -> Tuple[int, int]:
    """
    Fill for blocks folded between `lower` and `upper` while above clearing.

    Returns:
        (units filled, currency spent)
    """
    mps_delta = upper.cumulative_mps - lower.cumulative_mps
    if mps_delta <= 0:
        return 0, 0

    if bid.exact_in:
        per_price_delta = upper.cumulative_mps_per_price - lower.cumulative_mps_per_price
        units = mul_div(bid.effective_amount_q96, per_price_delta, MPS * Q96 * Q96)
        spent = mul_div(bid.effective_amount_q96, mps_delta, MPS * Q96, round_up=True)
    else:
        times_price_delta = upper.cumulative_mps_times_price - lower.cumulative_mps_times_price
        units = mul_div(bid.effective_amount_q96, mps_delta, MPS * Q96)
        spent = mul_div(bid.effective_amount_q96, times_price_delta, MPS * Q96 * Q96, round_up=True)
    return units, spent


def partially_filled(bid: Bid, lower: Checkpoint, upper: Checkpoint) -> Tuple[int, int]:
    """
    Pro-rata fill for blocks folded between `lower` and `upper` at clearing.

    Every block in the span cleared at exactly the bid's max price; the
    clearing tick received `fill_ratio` of its demand and each bid at that
    tick gets the same ratio of its own demand. The charge is the same
    ratio of the bid's currency, so it is never less than the currency
    the checkpoints count as raised for this bid.

    Returns:
        (units filled, currency spent)
    """
    clearing_delta = upper.cumulative_clearing_mps - lower.cumulative_clearing_mps
    if clearing_delta <= 0:
        return 0, 0

    demand = bid.demand_units_q96(bid.max_price)
    units = mul_div(demand, clearing_delta, MPS * Q96 * Q96)
    if bid.exact_in:
        spent = mul_div(bid.effective_amount_q96, clearing_delta, MPS * Q96 * Q96, round_up=True)
    else:
        spent = mul_div(
            bid.effective_amount_q96, clearing_delta * bid.max_price, MPS * Q96 * Q96 * Q96, round_up=True
        )
    return units, spent
