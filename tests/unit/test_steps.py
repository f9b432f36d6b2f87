"""
Tests for the issuance schedule.

Tests cover:
1. Packed step encoding
2. Schedule validation
3. Range queries (segments, cumulative issuance)
4. Forward-only cursor
"""

import pytest

from cca.core.auction.steps import (
    IssuanceSchedule,
    encode_steps,
    decode_steps,
)
from cca.core.errors import (
    AuctionNotStarted,
    InvalidEndBlock,
    InvalidRateSum,
    InvalidScheduleLength,
    ScheduleExhausted,
)
from cca.core.fixed_point import MPS


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def two_step_schedule():
    """1% per block for 50 blocks, then 2.5% per block for 20 blocks."""
    return IssuanceSchedule([(100_000, 50), (250_000, 20)], start_block=100, end_block=170)


# =============================================================================
# Packing Tests
# =============================================================================


class TestPacking:
    """Tests for the 8-byte packed step format."""

    def test_encode_layout(self):
        """mps occupies the upper 24 bits, block delta the lower 40."""
        assert encode_steps([(100_000, 100)]).hex() == "0186a00000000064"

    def test_decode_hex_with_prefix(self):
        assert decode_steps("0x0186a00000000064") == [(100_000, 100)]

    def test_decode_multiple_steps(self):
        data = encode_steps([(100_000, 50), (250_000, 20)])
        assert decode_steps(data) == [(100_000, 50), (250_000, 20)]

    def test_decode_rejects_partial_step(self):
        with pytest.raises(InvalidScheduleLength):
            decode_steps(b"\x00" * 7)

    def test_decode_rejects_empty(self):
        with pytest.raises(InvalidScheduleLength):
            decode_steps(b"")

    def test_decode_rejects_bad_hex(self):
        with pytest.raises(InvalidScheduleLength):
            decode_steps("0xzz")

    def test_encode_rejects_oversized_mps(self):
        with pytest.raises(InvalidScheduleLength):
            encode_steps([(1 << 24, 1)])


# =============================================================================
# Validation Tests
# =============================================================================


class TestScheduleValidation:
    """Tests for schedule construction."""

    def test_valid_schedule(self, two_step_schedule):
        assert len(two_step_schedule) == 2
        assert two_step_schedule.steps[1].start_block == 150
        assert two_step_schedule.steps[1].block_count == 20

    def test_rates_must_sum_to_mps(self):
        with pytest.raises(InvalidRateSum):
            IssuanceSchedule([(99_999, 100)], 0, 100)

    def test_steps_must_reach_end_block(self):
        with pytest.raises(InvalidEndBlock):
            IssuanceSchedule([(100_000, 100)], 0, 101)

    def test_end_must_follow_start(self):
        with pytest.raises(InvalidEndBlock):
            IssuanceSchedule([(100_000, 100)], 10, 10)

    def test_empty_steps(self):
        with pytest.raises(InvalidScheduleLength):
            IssuanceSchedule([], 0, 100)

    def test_zero_block_delta(self):
        with pytest.raises(InvalidScheduleLength):
            IssuanceSchedule([(100_000, 100), (0, 0)], 0, 100)

    def test_from_packed(self):
        schedule = IssuanceSchedule.from_packed("0x0186a00000000064", 0, 100)
        assert schedule.steps[0].mps == 100_000


# =============================================================================
# Range Query Tests
# =============================================================================


class TestRangeQueries:
    """Tests for segment iteration and cumulative issuance."""

    def test_segments_within_one_step(self, two_step_schedule):
        assert list(two_step_schedule.segments(110, 120)) == [(100_000, 10)]

    def test_segments_across_steps(self, two_step_schedule):
        assert list(two_step_schedule.segments(140, 160)) == [(100_000, 10), (250_000, 10)]

    def test_empty_range(self, two_step_schedule):
        assert list(two_step_schedule.segments(120, 120)) == []

    def test_segments_past_end(self, two_step_schedule):
        with pytest.raises(ScheduleExhausted):
            list(two_step_schedule.segments(160, 171))

    def test_cumulative_at_end_is_full(self, two_step_schedule):
        assert two_step_schedule.cumulative_mps_at(170) == MPS

    def test_cumulative_mid_schedule(self, two_step_schedule):
        assert two_step_schedule.cumulative_mps_at(150) == 5_000_000
        assert two_step_schedule.cumulative_mps_at(160) == 7_500_000

    def test_step_for(self, two_step_schedule):
        assert two_step_schedule.step_for(149).mps == 100_000
        assert two_step_schedule.step_for(150).mps == 250_000
        assert two_step_schedule.step_for(170).mps == 250_000


class TestCursor:
    """Tests for the forward-only step cursor."""

    def test_starts_at_first_step(self, two_step_schedule):
        assert two_step_schedule.current_step.mps == 100_000

    def test_advances_across_steps(self, two_step_schedule):
        step = two_step_schedule.advance_to(155)
        assert step.mps == 250_000

    def test_end_block_returns_last_step(self, two_step_schedule):
        assert two_step_schedule.advance_to(170).mps == 250_000

    def test_before_start(self, two_step_schedule):
        with pytest.raises(AuctionNotStarted):
            two_step_schedule.advance_to(99)

    def test_past_end(self, two_step_schedule):
        with pytest.raises(ScheduleExhausted):
            two_step_schedule.advance_to(171)

    def test_never_moves_backwards(self, two_step_schedule):
        two_step_schedule.advance_to(160)
        assert two_step_schedule.advance_to(120).mps == 250_000
