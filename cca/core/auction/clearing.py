"""
Clearing Algorithm - Computes the next checkpoint from the current demand.

Given the head checkpoint and the tick book, a new checkpoint at block `b`:

1. Resolves the supply still to be sold, spread over the issuance still to
   come: (total_supply - cleared) * MPS / (MPS - cumulative_mps). Supply left
   unsold at the floor therefore rolls forward.
2. Walks the book upward, crossing every tick the demand above it can
   fully absorb.
3. Interpolates the price at which the remaining demand above clearing
   exactly buys the supply, rounds it up onto the tick grid, and never lets
   it fall below the highest crossed tick, the previous price, or the floor.
4. Lets the tick sitting exactly at the clearing price share whatever
   supply the demand above it leaves over (pro rata).
5. Folds the issued blocks [head.block, b) into the cumulative fields at the
   new price.

Everything here is pure: the result is a plan that the auction commits only
once the calling operation has passed all of its checks.
"""

from dataclasses import dataclass
from typing import Optional

from cca.core.auction.checkpoints import Checkpoint
from cca.core.auction.steps import IssuanceSchedule
from cca.core.auction.ticks import TickLedger, TickWalk
from cca.core.fixed_point import MPS, Q96, ceil_to_multiple, checked_sub, currency_to_units, mul_div


@dataclass(frozen=True)
class ClearingPlan:
    """A computed, uncommitted checkpoint and tick walk."""
    checkpoint: Checkpoint
    walk: TickWalk


def resolved_supply_q96(total_supply: int, cleared_q96: int, cumulative_mps: int) -> int:
    """Supply competed for, in Q96 units per full issuance."""
    remaining_mps = MPS - cumulative_mps
    if remaining_mps <= 0:
        return 0
    return mul_div(checked_sub(total_supply * Q96, cleared_q96), MPS, remaining_mps)


def interpolate_price(currency_q96: int, units_q96: int, supply_q96: int) -> int:
    """
    Price at which currency_q96 / price + units_q96 == supply_q96.

    Rounded up so the demand above the price never exceeds the supply.
    The caller also rounds the result up onto the tick grid, never down;
    a price rounded down would sell more than is issued (DESIGN.md,
    "Clearing price rounding").
    Returns 0 when there is no exact-in demand or the exact-out demand
    alone meets the supply.
    """
    if currency_q96 == 0 or supply_q96 <= units_q96:
        return 0
    return mul_div(currency_q96, Q96, supply_q96 - units_q96, round_up=True)


def plan_checkpoint(
    block: int,
    head: Optional[Checkpoint],
    ticks: TickLedger,
    schedule: IssuanceSchedule,
    total_supply: int,
) -> ClearingPlan:
    """
    Compute the checkpoint at `block` following `head`.

    Args:
        block: Block to checkpoint at, within [start_block, end_block]
        head: Current head checkpoint (None before the first one)
        ticks: Tick book (read only)
        schedule: Issuance schedule (read only)
        total_supply: Units for sale

    Returns:
        ClearingPlan to be committed by the caller
    """
    if head is None:
        prev_price = ticks.floor_price
        from_block = schedule.start_block
        cleared_q96 = 0
        cumulative_mps = 0
        cumulative_mps_per_price = 0
        cumulative_mps_times_price = 0
        cumulative_clearing_mps = 0
        currency_raised_q96 = 0
    else:
        prev_price = head.clearing_price
        from_block = head.block
        cleared_q96 = head.total_cleared_q96
        cumulative_mps = head.cumulative_mps
        cumulative_mps_per_price = head.cumulative_mps_per_price
        cumulative_mps_times_price = head.cumulative_mps_times_price
        cumulative_clearing_mps = head.cumulative_clearing_mps
        currency_raised_q96 = head.currency_raised_q96

    supply = resolved_supply_q96(total_supply, cleared_q96, cumulative_mps)

    # Demand vs supply walk
    if supply == 0:
        walk = TickWalk(
            next_active_price=ticks.next_active_price,
            currency_demand_above_q96=ticks.currency_demand_above_q96,
            unit_demand_above_q96=ticks.unit_demand_above_q96,
            highest_crossed_price=None,
            ticks_crossed=0,
        )
        price = prev_price
    else:
        walk = ticks.plan_walk(supply, min_price=prev_price)
        lower = prev_price
        if walk.highest_crossed_price is not None:
            lower = max(lower, walk.highest_crossed_price)

        exact = interpolate_price(walk.currency_demand_above_q96, walk.unit_demand_above_q96, supply)
        price = max(ceil_to_multiple(exact, ticks.tick_spacing), lower, ticks.floor_price)

        # Snapped onto the next active tick: it now sits at clearing
        if price >= walk.next_active_price:
            walk = ticks.plan_walk(supply, min_price=price)

    # Clearing tick shares what the demand above leaves over
    demand_above = (
        currency_to_units(walk.currency_demand_above_q96, price)
        + walk.unit_demand_above_q96
    )
    clearing_tick = ticks.get(price)
    tick_demand = clearing_tick.resolved_demand_q96(price) if clearing_tick else 0
    leftover = supply - demand_above if supply > demand_above else 0
    filled_at_tick = min(tick_demand, leftover)
    fill_ratio = mul_div(filled_at_tick, Q96, tick_demand) if tick_demand else 0
    cleared_demand = min(demand_above, supply) + filled_at_tick

    # Fold issued blocks at the new price
    block_cleared = 0
    for rate, blocks in schedule.segments(from_block, block):
        mps = rate * blocks
        cumulative_mps += mps
        cumulative_mps_per_price += mul_div(mps, Q96 * Q96, price)
        cumulative_mps_times_price += mps * price
        cumulative_clearing_mps += mps * fill_ratio
        cleared_q96 += mul_div(cleared_demand, mps, MPS)
        currency_raised_q96 += mul_div(cleared_demand * mps, price, MPS * Q96)
        block_cleared = mul_div(cleared_demand, rate, MPS * Q96)

    checkpoint = Checkpoint(
        block=block,
        clearing_price=price,
        total_cleared_q96=cleared_q96,
        cumulative_mps=cumulative_mps,
        cumulative_mps_per_price=cumulative_mps_per_price,
        cumulative_mps_times_price=cumulative_mps_times_price,
        cumulative_clearing_mps=cumulative_clearing_mps,
        currency_raised_q96=currency_raised_q96,
        cleared_demand_q96=cleared_demand,
        clearing_fill_ratio_q96=fill_ratio,
        block_cleared=block_cleared,
        prev=head.block if head is not None else None,
    )
    return ClearingPlan(checkpoint=checkpoint, walk=walk)
