"""
Issuance Schedule - Piecewise-constant release of supply over blocks.

Each step releases `mps` (MPS units, 1e7 = 100%) of the total supply per
block for `block_delta` blocks. Steps are contiguous from the start block
and must cover the auction window exactly, releasing 100% in total.

Packed format (as produced by the deployment tooling):
- each step is 8 bytes, big-endian
- upper 24 bits: mps per block
- lower 40 bits: block delta
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple, Union

from cca.core.errors import (
    AuctionNotStarted,
    InvalidEndBlock,
    InvalidRateSum,
    InvalidScheduleLength,
    ScheduleExhausted,
)
from cca.core.fixed_point import MPS
from cca.utils.logger import get_logger

logger = get_logger("steps")


# =============================================================================
# Constants
# =============================================================================

STEP_SIZE_BYTES = 8
MPS_BITS = 24
BLOCK_DELTA_BITS = 40
MAX_STEP_MPS = (1 << MPS_BITS) - 1
MAX_BLOCK_DELTA = (1 << BLOCK_DELTA_BITS) - 1


# =============================================================================
# Packing
# =============================================================================


def encode_steps(steps: Sequence[Tuple[int, int]]) -> bytes:
    """
    Pack (mps, block_delta) pairs into the 8-byte step format.

    Raises:
        InvalidScheduleLength: if a field does not fit its bit width
    """
    out = bytearray()
    for mps, block_delta in steps:
        if not 0 <= mps <= MAX_STEP_MPS or not 0 <= block_delta <= MAX_BLOCK_DELTA:
            raise InvalidScheduleLength(f"Step ({mps}, {block_delta}) does not fit packed format")
        packed = (mps << BLOCK_DELTA_BITS) | block_delta
        out += packed.to_bytes(STEP_SIZE_BYTES, "big")
    return bytes(out)


def decode_steps(data: Union[bytes, str]) -> List[Tuple[int, int]]:
    """
    Unpack 8-byte steps into (mps, block_delta) pairs.

    Accepts raw bytes or a hex string with optional 0x prefix.
    """
    if isinstance(data, str):
        hex_str = data[2:] if data.startswith("0x") else data
        try:
            data = bytes.fromhex(hex_str)
        except ValueError as e:
            raise InvalidScheduleLength(f"Steps data is not valid hex: {e}") from e

    if len(data) == 0 or len(data) % STEP_SIZE_BYTES != 0:
        raise InvalidScheduleLength(
            f"Steps data must be a non-empty multiple of {STEP_SIZE_BYTES} bytes, got {len(data)}"
        )

    steps = []
    for offset in range(0, len(data), STEP_SIZE_BYTES):
        packed = int.from_bytes(data[offset:offset + STEP_SIZE_BYTES], "big")
        steps.append((packed >> BLOCK_DELTA_BITS, packed & MAX_BLOCK_DELTA))
    return steps


# =============================================================================
# Schedule
# =============================================================================


@dataclass(frozen=True)
class IssuanceStep:
    """A constant release rate over [start_block, end_block)."""
    mps: int
    start_block: int
    end_block: int

    @property
    def block_count(self) -> int:
        return self.end_block - self.start_block


class IssuanceSchedule:
    """
    Validated issuance steps with a forward-only cursor.

    The cursor tracks the active step and only ever moves forward; range
    queries (`segments`, `cumulative_mps_at`) are read-only.
    """

    def __init__(self, steps: Sequence[Tuple[int, int]], start_block: int, end_block: int):
        if end_block <= start_block:
            raise InvalidEndBlock(f"End block {end_block} must be after start block {start_block}")
        if not steps:
            raise InvalidScheduleLength("Schedule must have at least one step")

        self.start_block = start_block
        self.end_block = end_block
        self.steps: List[IssuanceStep] = []

        block = start_block
        total_mps = 0
        for mps, block_delta in steps:
            if block_delta <= 0:
                raise InvalidScheduleLength(f"Step block delta must be positive, got {block_delta}")
            if not 0 <= mps <= MAX_STEP_MPS:
                raise InvalidScheduleLength(f"Step mps {mps} out of range")
            self.steps.append(IssuanceStep(mps=mps, start_block=block, end_block=block + block_delta))
            block += block_delta
            total_mps += mps * block_delta

        if block != end_block:
            raise InvalidEndBlock(f"Steps end at block {block}, expected {end_block}")
        if total_mps != MPS:
            raise InvalidRateSum(f"Steps release {total_mps} mps, expected {MPS}")

        self._starts = [step.start_block for step in self.steps]
        self._cursor = 0

    @classmethod
    def from_packed(cls, data: Union[bytes, str], start_block: int, end_block: int) -> "IssuanceSchedule":
        """Build a schedule from the packed step format."""
        return cls(decode_steps(data), start_block, end_block)

    # =========================================================================
    # Cursor
    # =========================================================================

    @property
    def current_step(self) -> IssuanceStep:
        return self.steps[self._cursor]

    def advance_to(self, block: int) -> IssuanceStep:
        """
        Move the cursor to the step covering `block` and return it.

        At exactly the end block the last step is returned.

        Raises:
            AuctionNotStarted: block precedes the schedule
            ScheduleExhausted: block lies beyond the end block
        """
        if block < self.start_block:
            raise AuctionNotStarted(f"Block {block} precedes start block {self.start_block}")
        if block > self.end_block:
            raise ScheduleExhausted(f"Block {block} is past end block {self.end_block}")

        while (
            self._cursor < len(self.steps) - 1
            and block >= self.steps[self._cursor].end_block
        ):
            self._cursor += 1
            logger.debug(f"Advanced to step {self._cursor}: {self.current_step}")
        return self.current_step

    # =========================================================================
    # Range Queries
    # =========================================================================

    def _index_of(self, block: int) -> int:
        return max(0, min(bisect_right(self._starts, block) - 1, len(self.steps) - 1))

    def step_for(self, block: int) -> IssuanceStep:
        """Step covering `block` (the last step at the end block)."""
        if block < self.start_block:
            raise AuctionNotStarted(f"Block {block} precedes start block {self.start_block}")
        if block > self.end_block:
            raise ScheduleExhausted(f"Block {block} is past end block {self.end_block}")
        return self.steps[self._index_of(block)]

    def segments(self, from_block: int, to_block: int) -> Iterator[Tuple[int, int]]:
        """
        Yield (mps, blocks) pieces covering [from_block, to_block).

        Raises:
            ScheduleExhausted: to_block lies beyond the end block
        """
        if to_block > self.end_block:
            raise ScheduleExhausted(f"Block {to_block} is past end block {self.end_block}")
        if from_block >= to_block:
            return

        index = self._index_of(max(from_block, self.start_block))
        block = max(from_block, self.start_block)
        while block < to_block:
            step = self.steps[index]
            upper = min(step.end_block, to_block)
            yield step.mps, upper - block
            block = upper
            index += 1

    def cumulative_mps_at(self, block: int) -> int:
        """Fraction of supply released over [start_block, block)."""
        return sum(mps * blocks for mps, blocks in self.segments(self.start_block, block))

    def __len__(self) -> int:
        return len(self.steps)
