"""
CCA Auction Module.

This module provides the clearing engine:
- Issuance schedule and packed step codec
- Tick ledger of bid demand
- Checkpoint ledger and the clearing algorithm
- Bid settlement and the Auction itself
"""

from cca.core.auction.steps import (
    IssuanceSchedule,
    IssuanceStep,
    encode_steps,
    decode_steps,
)

from cca.core.auction.ticks import (
    Tick,
    TickLedger,
    TickWalk,
)

from cca.core.auction.checkpoints import (
    Checkpoint,
    CheckpointLedger,
)

from cca.core.auction.clearing import (
    ClearingPlan,
    plan_checkpoint,
    resolved_supply_q96,
    interpolate_price,
)

from cca.core.auction.bids import (
    Bid,
    BidStatus,
    ExitPath,
    required_currency,
    effective_amount_q96,
    fully_filled,
    partially_filled,
)

from cca.core.auction.auction import Auction

__all__ = [
    # Schedule
    "IssuanceSchedule",
    "IssuanceStep",
    "encode_steps",
    "decode_steps",
    # Ticks
    "Tick",
    "TickLedger",
    "TickWalk",
    # Checkpoints
    "Checkpoint",
    "CheckpointLedger",
    "ClearingPlan",
    "plan_checkpoint",
    "resolved_supply_q96",
    "interpolate_price",
    # Bids
    "Bid",
    "BidStatus",
    "ExitPath",
    "required_currency",
    "effective_amount_q96",
    "fully_filled",
    "partially_filled",
    # Auction
    "Auction",
]
