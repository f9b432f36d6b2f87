"""
Checkpoint Ledger - Append-only chain of clearing snapshots.

A checkpoint written at block `b` records:
- the clearing price that governs issuance blocks [prev.block, b)
- cumulative statistics over every issued block in [start_block, b)

Because the cumulative fields are running sums, settling a bid over any
range of blocks is a difference of two checkpoints: no per-block
iteration is needed.

Cumulative fields:
- cumulative_mps: Σ rate, fraction of supply issued so far
- cumulative_mps_per_price: Σ rate * Q96^2 / price (exact-in fills)
- cumulative_mps_times_price: Σ rate * price (exact-out charges)
- cumulative_clearing_mps: Σ rate * fill_ratio_q96 (pro-rata fills at clearing)
- total_cleared_q96 / currency_raised_q96: units sold and currency raised
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from cca.core.errors import CheckpointTraversalLimit, InvalidCheckpointHint
from cca.core.fixed_point import Q96
from cca.utils.logger import get_logger

logger = get_logger("checkpoints")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class Checkpoint:
    """Immutable clearing snapshot keyed by block number."""
    block: int
    clearing_price: int
    total_cleared_q96: int = 0
    cumulative_mps: int = 0
    cumulative_mps_per_price: int = 0
    cumulative_mps_times_price: int = 0
    cumulative_clearing_mps: int = 0
    currency_raised_q96: int = 0
    cleared_demand_q96: int = 0      # units cleared per full issuance at this price
    clearing_fill_ratio_q96: int = 0  # share of demand filled at the clearing tick
    block_cleared: int = 0           # units cleared in the last block folded in
    prev: Optional[int] = None

    @property
    def total_cleared(self) -> int:
        """Units sold so far, rounded down."""
        return self.total_cleared_q96 // Q96

    @property
    def currency_raised(self) -> int:
        """Currency raised so far, rounded down."""
        return self.currency_raised_q96 // Q96

    def to_dict(self) -> dict:
        return {
            "block": self.block,
            "clearing_price": self.clearing_price,
            "total_cleared": self.total_cleared,
            "cumulative_mps": self.cumulative_mps,
            "currency_raised": self.currency_raised,
            "block_cleared": self.block_cleared,
            "prev": self.prev,
        }


# =============================================================================
# Checkpoint Ledger
# =============================================================================


class CheckpointLedger:
    """
    Block-indexed chain of checkpoints.

    Checkpoints are linked backwards through `prev`; the ledger also keeps
    forward links and a sorted block index so lookups by block are
    O(log n) and hint checks are O(1).
    """

    def __init__(self):
        self._checkpoints: Dict[int, Checkpoint] = {}
        self._blocks: List[int] = []
        self._next: Dict[int, int] = {}

    @property
    def latest(self) -> Optional[Checkpoint]:
        if not self._blocks:
            return None
        return self._checkpoints[self._blocks[-1]]

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Checkpoint]:
        """Iterate checkpoints in block order."""
        for block in self._blocks:
            yield self._checkpoints[block]

    def get(self, block: int) -> Optional[Checkpoint]:
        return self._checkpoints.get(block)

    def require(self, block: int) -> Checkpoint:
        """Checkpoint at `block`, or InvalidCheckpointHint."""
        checkpoint = self._checkpoints.get(block)
        if checkpoint is None:
            raise InvalidCheckpointHint(f"No checkpoint at block {block}")
        return checkpoint

    def next_of(self, checkpoint: Checkpoint) -> Optional[Checkpoint]:
        block = self._next.get(checkpoint.block)
        if block is None:
            return None
        return self._checkpoints[block]

    def prev_of(self, checkpoint: Checkpoint) -> Optional[Checkpoint]:
        if checkpoint.prev is None:
            return None
        return self._checkpoints[checkpoint.prev]

    def governing(self, block: int) -> Optional[Checkpoint]:
        """Checkpoint whose clearing price applies to issuance block `block`."""
        index = bisect_right(self._blocks, block)
        if index == len(self._blocks):
            return None
        return self._checkpoints[self._blocks[index]]

    # =========================================================================
    # Mutation
    # =========================================================================

    def append(self, checkpoint: Checkpoint) -> None:
        """
        Append a checkpoint at a later block.

        Raises:
            ValueError: if the block does not advance, the prev link is
                        wrong, or the clearing price would decrease
        """
        head = self.latest
        if head is not None:
            if checkpoint.block <= head.block:
                raise ValueError(f"Checkpoint block {checkpoint.block} must follow {head.block}")
            if checkpoint.prev != head.block:
                raise ValueError(f"Checkpoint prev {checkpoint.prev} must be {head.block}")
            if checkpoint.clearing_price < head.clearing_price:
                raise ValueError(
                    f"Clearing price decreased: {checkpoint.clearing_price} < {head.clearing_price}"
                )
            self._next[head.block] = checkpoint.block
        elif checkpoint.prev is not None:
            raise ValueError("First checkpoint cannot have a predecessor")

        self._checkpoints[checkpoint.block] = checkpoint
        self._blocks.append(checkpoint.block)
        logger.debug(
            f"Checkpoint at block {checkpoint.block}: price={checkpoint.clearing_price}, "
            f"cleared={checkpoint.total_cleared}, mps={checkpoint.cumulative_mps}"
        )

    def discard_latest(self) -> Checkpoint:
        """Remove the head checkpoint of an aborted operation."""
        if not self._blocks:
            raise ValueError("Ledger is empty")
        block = self._blocks.pop()
        checkpoint = self._checkpoints.pop(block)
        if checkpoint.prev is not None:
            self._next.pop(checkpoint.prev, None)
        return checkpoint

    # =========================================================================
    # Traversal
    # =========================================================================

    def walk_back(self, limit: int, from_block: Optional[int] = None) -> Iterator[Checkpoint]:
        """
        Walk the chain backwards through `prev` links.

        Raises:
            CheckpointTraversalLimit: more than `limit` checkpoints visited
        """
        checkpoint = self.latest if from_block is None else self.require(from_block)
        visited = 0
        while checkpoint is not None:
            visited += 1
            if visited > limit:
                raise CheckpointTraversalLimit(f"Checkpoint walk exceeded {limit} steps")
            yield checkpoint
            checkpoint = self.prev_of(checkpoint)
