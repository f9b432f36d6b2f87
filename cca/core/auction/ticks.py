"""
Tick Ledger - Discovered price levels and the demand registered at each.

Ticks form a price-ascending singly linked list seeded with the floor
tick. Each tick aggregates the effective demand of every bid whose max
price equals the tick price:

- currency_demand_q96: exact-in demand, currency scaled by Q96
- unit_demand_q96: exact-out demand, units scaled by Q96

Demand is *effective*: a bid that enters after part of the supply has been
issued is scaled up by MPS / (MPS - issued) so that all bids compete for
supply on the same footing.

The ledger also keeps the running sums for every tick strictly above the
clearing price, starting at `next_active_price`. The clearing algorithm
reads those sums in O(1) and walks ticks upward as the price rises.
"""

from bisect import bisect_left, insort
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from cca.core.errors import InvalidInsertionHint, PriceNotTickAligned
from cca.core.fixed_point import MAX_TICK_PRICE, checked_add, currency_to_units, floor_to_multiple
from cca.utils.logger import get_logger

logger = get_logger("ticks")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class Tick:
    """A discovered price level."""
    price: int
    next_price: int = MAX_TICK_PRICE
    currency_demand_q96: int = 0
    unit_demand_q96: int = 0

    def resolved_demand_q96(self, price: Optional[int] = None) -> int:
        """Demand in Q96 units when the exact-in side is priced at `price`."""
        at = self.price if price is None else price
        return currency_to_units(self.currency_demand_q96, at) + self.unit_demand_q96

    @property
    def has_demand(self) -> bool:
        return self.currency_demand_q96 > 0 or self.unit_demand_q96 > 0


@dataclass(frozen=True)
class TickWalk:
    """
    Result of walking the book for a given supply.

    Computed without touching the ledger; `TickLedger.apply_walk` commits it.
    """
    next_active_price: int
    currency_demand_above_q96: int
    unit_demand_above_q96: int
    highest_crossed_price: Optional[int]
    ticks_crossed: int


# =============================================================================
# Tick Ledger
# =============================================================================


class TickLedger:
    """
    Ordered book of ticks with O(1) access to the demand above clearing.

    Attributes:
        floor_price: Price of the sentinel floor tick
        tick_spacing: Every tick price is a multiple of this
        next_active_price: Lowest tick strictly above the clearing price
    """

    def __init__(self, floor_price: int, tick_spacing: int):
        self.floor_price = floor_price
        self.tick_spacing = tick_spacing

        self.ticks: Dict[int, Tick] = {floor_price: Tick(price=floor_price)}
        self._prices: List[int] = [floor_price]

        self.next_active_price = MAX_TICK_PRICE
        self.currency_demand_above_q96 = 0
        self.unit_demand_above_q96 = 0

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, price: int) -> Optional[Tick]:
        return self.ticks.get(price)

    def __contains__(self, price: int) -> bool:
        return price in self.ticks

    def __iter__(self) -> Iterator[Tick]:
        """Iterate ticks in ascending price order."""
        price = self.floor_price
        while price != MAX_TICK_PRICE:
            tick = self.ticks[price]
            yield tick
            price = tick.next_price

    def __len__(self) -> int:
        return len(self.ticks)

    def check_aligned(self, price: int) -> None:
        if floor_to_multiple(price, self.tick_spacing) != price:
            raise PriceNotTickAligned(f"Price {price} is not a multiple of tick spacing {self.tick_spacing}")

    def preceding_price(self, price: int) -> int:
        """Highest existing tick price strictly below `price`."""
        index = bisect_left(self._prices, price)
        if index == 0:
            raise InvalidInsertionHint(f"No tick below price {price}")
        return self._prices[index - 1]

    def resolved_demand_at_price(self, price: int) -> int:
        """Demand of the tick at `price`, in Q96 units at its own price."""
        tick = self.ticks.get(price)
        if tick is None:
            return 0
        return tick.resolved_demand_q96()

    def resolved_demand_above(self, price: int) -> int:
        """Demand of every tick above clearing, priced at `price`, in Q96 units."""
        return (
            currency_to_units(self.currency_demand_above_q96, price)
            + self.unit_demand_above_q96
        )

    # =========================================================================
    # Insertion
    # =========================================================================

    def validate_insertion(self, prev_price: Optional[int], price: int) -> Optional[int]:
        """
        Check that a tick at `price` can be created after `prev_price`.

        Returns the verified preceding price, or None if the tick already
        exists. Does not modify the ledger.

        Raises:
            PriceNotTickAligned: price is off the tick grid
            InvalidInsertionHint: hint does not bracket the price
        """
        self.check_aligned(price)
        if price in self.ticks:
            return None

        if prev_price is None:
            return self.preceding_price(price)

        prev = self.ticks.get(prev_price)
        if prev is None:
            raise InvalidInsertionHint(f"Hint tick {prev_price} does not exist")
        if prev.price >= price:
            raise InvalidInsertionHint(f"Hint tick {prev_price} is not below {price}")
        if prev.next_price < price:
            raise InvalidInsertionHint(
                f"Hint tick {prev_price} is followed by {prev.next_price}, below {price}"
            )
        return prev_price

    def get_or_create_tick(
        self,
        prev_price: Optional[int],
        price: int,
        clearing_price: int,
    ) -> Tuple[Tick, bool]:
        """
        Return the tick at `price`, splicing a new one in after `prev_price`.

        Args:
            prev_price: Existing tick immediately below `price` (None to look it up)
            price: Tick price, a multiple of the spacing
            clearing_price: Current clearing price, for next-active tracking

        Returns:
            (tick, created)
        """
        verified_prev = self.validate_insertion(prev_price, price)
        if verified_prev is None:
            return self.ticks[price], False

        prev = self.ticks[verified_prev]
        tick = Tick(price=price, next_price=prev.next_price)
        prev.next_price = price
        self.ticks[price] = tick
        insort(self._prices, price)

        if clearing_price < price < self.next_active_price:
            self.next_active_price = price

        logger.debug(f"Tick initialized at {price} after {verified_prev}")
        return tick, True

    # =========================================================================
    # Demand
    # =========================================================================

    def check_demand(self, price: int, exact_in: bool, amount_q96: int, clearing_price: int) -> None:
        """
        Raise if adding `amount_q96` at `price` would overflow, without
        touching the ledger. A tick that does not exist yet counts as empty.

        Raises:
            ArithmeticBoundsError: a demand sum would exceed 256 bits
        """
        tick = self.ticks.get(price)
        if tick is None:
            checked_add(0, amount_q96)
        elif exact_in:
            checked_add(tick.currency_demand_q96, amount_q96)
        else:
            checked_add(tick.unit_demand_q96, amount_q96)

        next_active = self.next_active_price
        if tick is None and clearing_price < price < next_active:
            next_active = price
        if price >= next_active:
            above = self.currency_demand_above_q96 if exact_in else self.unit_demand_above_q96
            checked_add(above, amount_q96)

    def add_demand(self, price: int, exact_in: bool, amount_q96: int) -> Tick:
        """
        Register effective demand at an existing tick.

        Ticks at or above `next_active_price` also feed the running sums.
        """
        tick = self.ticks.get(price)
        if tick is None:
            raise KeyError(f"No tick at price {price}")

        if exact_in:
            tick.currency_demand_q96 = checked_add(tick.currency_demand_q96, amount_q96)
        else:
            tick.unit_demand_q96 = checked_add(tick.unit_demand_q96, amount_q96)

        if price >= self.next_active_price:
            if exact_in:
                self.currency_demand_above_q96 = checked_add(self.currency_demand_above_q96, amount_q96)
            else:
                self.unit_demand_above_q96 = checked_add(self.unit_demand_above_q96, amount_q96)
        return tick

    # =========================================================================
    # Clearing Walk
    # =========================================================================

    def plan_walk(self, supply_q96: int, min_price: int) -> TickWalk:
        """
        Cross every tick that the demand above it can fully absorb.

        Starting at `next_active_price`, while the demand above clearing,
        priced at the next active tick, is at least `supply_q96`, the price
        must rise to at least that tick: its demand leaves the running sums
        and the walk moves to the following tick.

        Ticks at or below `min_price` are crossed unconditionally.
        """
        price = self.next_active_price
        currency_above = self.currency_demand_above_q96
        units_above = self.unit_demand_above_q96
        highest_crossed = None
        crossed = 0

        while price != MAX_TICK_PRICE:
            tick = self.ticks[price]
            demand = currency_to_units(currency_above, price) + units_above
            if price > min_price and demand < supply_q96:
                break
            currency_above -= tick.currency_demand_q96
            units_above -= tick.unit_demand_q96
            highest_crossed = price
            crossed += 1
            price = tick.next_price

        return TickWalk(
            next_active_price=price,
            currency_demand_above_q96=currency_above,
            unit_demand_above_q96=units_above,
            highest_crossed_price=highest_crossed,
            ticks_crossed=crossed,
        )

    def apply_walk(self, walk: TickWalk) -> None:
        """Commit a planned walk."""
        self.next_active_price = walk.next_active_price
        self.currency_demand_above_q96 = walk.currency_demand_above_q96
        self.unit_demand_above_q96 = walk.unit_demand_above_q96
        if walk.ticks_crossed:
            logger.debug(f"Crossed {walk.ticks_crossed} tick(s), next active {walk.next_active_price}")
