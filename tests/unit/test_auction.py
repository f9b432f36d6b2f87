"""
Tests for the Auction.

Tests cover:
1. Checkpointing and block handling
2. Bid submission rules
3. Exit paths and checkpoint hints
4. Claims and sweeps
5. All-or-nothing operations and events
"""

import pytest

from cca.core.assets import InMemoryAsset
from cca.core.auction import Auction, BidStatus, ExitPath
from cca.core.auction.bids import effective_amount_q96
from cca.core.config import AuctionConfig, EngineConfig
from cca.core.errors import (
    AlreadyExited,
    AlreadySwept,
    ArithmeticBoundsError,
    AuctionIsOver,
    AuctionNotEnded,
    AuctionNotStarted,
    BidBelowClearingPrice,
    CannotExitBid,
    CheckpointTraversalLimit,
    ClaimBlockNotReached,
    InsufficientFunds,
    InvalidAddress,
    InvalidAmount,
    InvalidBidPrice,
    InvalidCheckpointHint,
    InvalidInsertionHint,
    InvalidTotalSupply,
    NotBidOwner,
    NotClaimable,
    NotExited,
    NotGraduated,
    PriceNotTickAligned,
    StaleBlock,
    UnknownBid,
    ValidationHookRejected,
)
from cca.core.events import EventType
from cca.core.fixed_point import MAX_BID_PRICE, MPS, Q96
from cca.core.hooks import AllowlistHook


# =============================================================================
# Fixtures
# =============================================================================

AUCTION = "0x" + "ab" * 20
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
FUNDS = "0x" + "f0" * 20
UNSOLD = "0x" + "e0" * 20


def make_config(**overrides):
    params = dict(
        total_supply=1000,
        floor_price=Q96,
        tick_spacing=Q96,
        start_block=0,
        end_block=100,
        claim_block=110,
        steps=[(100_000, 100)],
        funds_recipient=FUNDS,
        units_recipient=UNSOLD,
    )
    params.update(overrides)
    return AuctionConfig(**params)


def make_auction(engine_config=None, validation_hook=None, **overrides):
    config = make_config(**overrides)
    currency = InMemoryAsset("CUR", AUCTION)
    units = InMemoryAsset("UNIT", AUCTION)
    units.mint(AUCTION, config.total_supply)
    currency.mint(ALICE, 100_000)
    currency.mint(BOB, 100_000)
    return Auction(
        config,
        currency=currency,
        units=units,
        validation_hook=validation_hook,
        engine_config=engine_config,
    )


@pytest.fixture
def auction():
    return make_auction()


@pytest.fixture
def outbid_auction():
    """
    Alice bids 1000 @ 2.0 at block 0; Bob bids 4000 @ 4.0 at block 1.

    Checkpoint 1 clears at 1.0 (Alice fully filled for block 0);
    checkpoint 2 clears at 4.0 (Alice outbid).
    """
    auction = make_auction()
    alice = auction.submit_bid(2 * Q96, True, 1000, ALICE, block=0)
    bob = auction.submit_bid(4 * Q96, True, 4000, BOB, block=1)
    auction.recompute(2)
    return auction, alice, bob


# =============================================================================
# Construction & Checkpoint Tests
# =============================================================================


class TestConstruction:
    """Tests for building an auction."""

    def test_invalid_config_rejected(self):
        with pytest.raises(InvalidTotalSupply):
            make_auction(total_supply=0)

    def test_initial_state(self, auction):
        assert auction.clearing_price == Q96
        assert auction.latest_checkpoint is None
        assert auction.stats()["bids"] == 0


class TestCheckpointing:
    """Tests for recompute and block handling."""

    def test_recompute_creates_checkpoint(self, auction):
        cp = auction.recompute(10)
        assert cp.block == 10
        assert cp.cumulative_mps == 1_000_000
        assert auction.latest_checkpoint is cp

    def test_recompute_idempotent_within_block(self, auction):
        first = auction.recompute(10)
        assert auction.recompute(10) is first
        assert len(auction.checkpoints) == 1

    def test_recompute_clamps_to_end(self, auction):
        cp = auction.recompute(500)
        assert cp.block == 100
        assert cp.cumulative_mps == 10_000_000

    def test_before_start(self):
        auction = make_auction(start_block=10, end_block=110, claim_block=110)
        with pytest.raises(AuctionNotStarted):
            auction.recompute(5)

    def test_stale_block(self, auction):
        auction.recompute(10)
        with pytest.raises(StaleBlock):
            auction.recompute(9)

    def test_checkpoint_event(self, auction):
        auction.recompute(10)
        events = auction.events.of_type(EventType.CHECKPOINT_UPDATED)
        assert len(events) == 1
        assert events[0].block == 10

    def test_checkpoint_at(self, outbid_auction):
        auction, _, _ = outbid_auction
        assert auction.checkpoint_at(0).block == 1
        assert auction.checkpoint_at(1).clearing_price == 4 * Q96


# =============================================================================
# Submission Tests
# =============================================================================


class TestSubmitBid:
    """Tests for placing bids."""

    def test_submit_locks_currency(self, auction):
        bid = auction.submit_bid(2 * Q96, True, 1000, ALICE, block=0)
        assert bid.bid_id == 0
        assert bid.locked_currency == 1000
        assert auction.currency.balance_of(ALICE) == 99_000
        assert auction.currency.custody_balance == 1000

    def test_exact_out_locks_at_max_price(self, auction):
        bid = auction.submit_bid(3 * Q96, False, 100, ALICE, block=0)
        assert bid.locked_currency == 300

    def test_ids_increase(self, auction):
        first = auction.submit_bid(2 * Q96, True, 10, ALICE, block=0)
        second = auction.submit_bid(2 * Q96, True, 10, BOB, block=0)
        assert second.bid_id == first.bid_id + 1

    def test_sender_pays_for_owner(self, auction):
        auction.submit_bid(2 * Q96, True, 500, ALICE, block=0, sender=BOB)
        assert auction.currency.balance_of(BOB) == 99_500
        assert auction.bids_of(ALICE)[0].amount == 500

    def test_zero_amount(self, auction):
        with pytest.raises(InvalidAmount):
            auction.submit_bid(2 * Q96, True, 0, ALICE, block=0)

    def test_below_floor(self):
        auction = make_auction(floor_price=2 * Q96)
        with pytest.raises(InvalidBidPrice):
            auction.submit_bid(Q96, True, 10, ALICE, block=0)

    def test_above_max_price(self, auction):
        with pytest.raises(InvalidBidPrice):
            auction.submit_bid(MAX_BID_PRICE + Q96, True, 10, ALICE, block=0)

    def test_misaligned_price(self, auction):
        with pytest.raises(PriceNotTickAligned):
            auction.submit_bid(2 * Q96 + 1, True, 10, ALICE, block=0)

    def test_bad_owner(self, auction):
        with pytest.raises(InvalidAddress):
            auction.submit_bid(2 * Q96, True, 10, "alice", block=0)

    def test_after_end(self, auction):
        with pytest.raises(AuctionIsOver):
            auction.submit_bid(2 * Q96, True, 10, ALICE, block=100)

    def test_below_clearing_price(self, outbid_auction):
        auction, _, _ = outbid_auction
        with pytest.raises(BidBelowClearingPrice):
            auction.submit_bid(3 * Q96, True, 10, ALICE, block=3)

    def test_at_clearing_price_accepted(self, outbid_auction):
        auction, _, _ = outbid_auction
        bid = auction.submit_bid(4 * Q96, True, 10, ALICE, block=3)
        assert bid.start_block == 3

    def test_bad_insertion_hint(self, auction):
        auction.submit_bid(2 * Q96, True, 10, ALICE, block=0)
        with pytest.raises(InvalidInsertionHint):
            auction.submit_bid(3 * Q96, True, 10, ALICE, block=0, prev_tick_price=Q96)

    def test_good_insertion_hint(self, auction):
        auction.submit_bid(2 * Q96, True, 10, ALICE, block=0)
        auction.submit_bid(3 * Q96, True, 10, ALICE, block=0, prev_tick_price=2 * Q96)
        assert [tick.price for tick in auction.ticks] == [Q96, 2 * Q96, 3 * Q96]

    def test_insufficient_funds(self, auction):
        with pytest.raises(InsufficientFunds):
            auction.submit_bid(2 * Q96, True, 200_000, ALICE, block=0)

    def test_validation_hook(self):
        auction = make_auction(validation_hook=AllowlistHook([ALICE]))
        auction.submit_bid(2 * Q96, True, 10, ALICE, block=0)
        with pytest.raises(ValidationHookRejected):
            auction.submit_bid(2 * Q96, True, 10, BOB, block=0)

    def test_late_bid_effective_amount(self, auction):
        bid = auction.submit_bid(2 * Q96, True, 900, ALICE, block=10)
        assert bid.start_cumulative_mps == 1_000_000
        assert bid.effective_amount_q96 == 1000 * Q96

    def test_events_in_order(self, auction):
        auction.submit_bid(2 * Q96, True, 10, ALICE, block=0)
        kinds = [event.event_type for event in auction.events.history]
        assert kinds == [
            EventType.CHECKPOINT_UPDATED,
            EventType.TICK_INITIALIZED,
            EventType.BID_SUBMITTED,
        ]


class TestAtomicity:
    """A failed operation leaves no trace."""

    def test_failed_submit_rolls_back_checkpoint(self, outbid_auction):
        auction, _, _ = outbid_auction
        checkpoints = len(auction.checkpoints)
        events = len(auction.events.history)

        with pytest.raises(BidBelowClearingPrice):
            auction.submit_bid(3 * Q96, True, 10, ALICE, block=5)

        assert len(auction.checkpoints) == checkpoints
        assert auction.latest_checkpoint.block == 2
        assert len(auction.events.history) == events

    def test_failed_transfer_rolls_back(self, auction):
        auction.submit_bid(2 * Q96, True, 1000, ALICE, block=0)
        next_active = auction.ticks.next_active_price

        with pytest.raises(InsufficientFunds):
            auction.submit_bid(5 * Q96, True, 10**9, BOB, block=10)

        assert auction.latest_checkpoint.block == 0
        assert auction.ticks.next_active_price == next_active
        assert 5 * Q96 not in auction.ticks
        assert len(auction.bids) == 1

    def test_subscriber_sees_only_committed_events(self, auction):
        seen = []
        auction.events.subscribe(seen.append)
        with pytest.raises(InvalidInsertionHint):
            auction.submit_bid(3 * Q96, True, 10, ALICE, block=0, prev_tick_price=2 * Q96)
        assert seen == []

    def test_overflowing_demand_moves_nothing(self):
        """A bid whose demand would overflow leaves balances, ticks and sums alone."""
        auction = make_auction(end_block=10, claim_block=10, steps=[(1_111_111, 9), (1, 1)])
        amount = 2**128 - 1
        fits = (2**256 - 1) // effective_amount_q96(amount, MPS - 1)
        auction.currency.mint(ALICE, amount * (fits + 1))
        for _ in range(fits):
            auction.submit_bid(2 * Q96, True, amount, ALICE, block=9)

        balance = auction.currency.balance_of(ALICE)
        above = auction.ticks.currency_demand_above_q96
        ticks = len(auction.ticks)

        with pytest.raises(ArithmeticBoundsError):
            auction.submit_bid(3 * Q96, True, amount, ALICE, block=9)

        assert auction.currency.balance_of(ALICE) == balance
        assert len(auction.ticks) == ticks
        assert 3 * Q96 not in auction.ticks
        assert auction.ticks.currency_demand_above_q96 == above
        assert len(auction.bids) == fits

    def test_failing_subscriber_keeps_committed_bid(self, auction):
        def handler(event):
            raise RuntimeError("subscriber failed")

        auction.events.subscribe(handler, EventType.CHECKPOINT_UPDATED)
        bid = auction.submit_bid(2 * Q96, True, 500, ALICE, block=0)

        assert auction.bids[bid.bid_id] is bid
        assert auction.currency.balance_of(ALICE) == 100_000 - 500
        assert len(auction.events.of_type(EventType.BID_SUBMITTED)) == 1
        assert len(auction.events.delivery_errors) == 1


# =============================================================================
# Exit Tests
# =============================================================================


class TestExitBid:
    """Tests for the exit paths."""

    def test_unknown_bid(self, auction):
        with pytest.raises(UnknownBid):
            auction.exit_bid(42, block=10)

    def test_cannot_exit_while_competing(self, auction):
        bid = auction.submit_bid(2 * Q96, True, 1000, ALICE, block=0)
        with pytest.raises(CannotExitBid):
            auction.exit_bid(bid.bid_id, block=50)

    def test_outbid_exit_with_hints(self, outbid_auction):
        auction, alice, _ = outbid_auction
        bid = auction.exit_bid(alice.bid_id, block=2, last_fully_filled_block=1, outbid_block=2)
        assert bid.exit_path == ExitPath.OUTBID
        assert bid.tokens_filled == 10
        assert bid.currency_spent == 10
        assert bid.refunded == 990
        assert auction.currency.balance_of(ALICE) == 100_000 - 10

    def test_outbid_exit_without_hints(self, outbid_auction):
        auction, alice, _ = outbid_auction
        bid = auction.exit_bid(alice.bid_id, block=2)
        assert bid.tokens_filled == 10
        assert bid.refunded == 990

    def test_wrong_last_fully_filled_hint(self, outbid_auction):
        auction, alice, _ = outbid_auction
        with pytest.raises(InvalidCheckpointHint):
            auction.exit_bid(alice.bid_id, block=2, last_fully_filled_block=0, outbid_block=2)

    def test_wrong_outbid_hint(self, outbid_auction):
        auction, alice, _ = outbid_auction
        with pytest.raises(InvalidCheckpointHint):
            auction.exit_bid(alice.bid_id, block=2, last_fully_filled_block=1, outbid_block=1)

    def test_missing_checkpoint_hint(self, outbid_auction):
        auction, alice, _ = outbid_auction
        with pytest.raises(InvalidCheckpointHint):
            auction.exit_bid(alice.bid_id, block=2, last_fully_filled_block=7)

    def test_traversal_limit(self):
        auction = make_auction(engine_config=EngineConfig(max_checkpoint_traversal=1))
        alice = auction.submit_bid(2 * Q96, True, 1000, ALICE, block=0)
        auction.submit_bid(4 * Q96, True, 4000, BOB, block=1)
        auction.recompute(2)

        with pytest.raises(CheckpointTraversalLimit):
            auction.exit_bid(alice.bid_id, block=2)
        bid = auction.exit_bid(alice.bid_id, block=2, last_fully_filled_block=1, outbid_block=2)
        assert bid.tokens_filled == 10

    def test_double_exit(self, outbid_auction):
        auction, alice, _ = outbid_auction
        auction.exit_bid(alice.bid_id, block=2)
        with pytest.raises(AlreadyExited):
            auction.exit_bid(alice.bid_id, block=3)

    def test_fully_filled_after_end(self, auction):
        bid = auction.submit_bid(2 * Q96, False, 100, ALICE, block=0)
        bid = auction.exit_bid(bid.bid_id, block=100)
        assert bid.exit_path == ExitPath.FULLY_FILLED
        assert bid.tokens_filled == 100
        assert bid.currency_spent == 100
        assert bid.refunded == 100

    def test_partially_filled_after_end(self, auction):
        alice = auction.submit_bid(Q96, True, 1500, ALICE, block=0)
        bob = auction.submit_bid(Q96, True, 500, BOB, block=0)
        auction.recompute(100)

        alice = auction.exit_bid(alice.bid_id, block=100)
        bob = auction.exit_bid(bob.bid_id, block=100)
        assert alice.exit_path == ExitPath.PARTIALLY_FILLED
        assert (alice.tokens_filled, alice.refunded) == (750, 750)
        assert (bob.tokens_filled, bob.refunded) == (250, 250)

    def test_not_graduated_refunds_everything(self):
        auction = make_auction(graduation_threshold_mps=5_000_000)
        bid = auction.submit_bid(Q96, True, 499, ALICE, block=0)
        bid = auction.exit_bid(bid.bid_id, block=100)
        assert bid.exit_path == ExitPath.REFUNDED
        assert bid.tokens_filled == 0
        assert bid.refunded == 499
        assert auction.currency.balance_of(ALICE) == 100_000

    def test_exit_event(self, outbid_auction):
        auction, alice, _ = outbid_auction
        auction.exit_bid(alice.bid_id, block=2)
        event = auction.events.of_type(EventType.BID_EXITED)[0]
        assert event.data["tokens_filled"] == 10
        assert event.data["currency_refunded"] == 990


# =============================================================================
# Claim Tests
# =============================================================================


class TestClaim:
    """Tests for claiming settled units."""

    def test_claim_before_claim_block(self, auction):
        bid = auction.submit_bid(Q96, True, 1000, ALICE, block=0)
        auction.exit_bid(bid.bid_id, block=100)
        with pytest.raises(ClaimBlockNotReached):
            auction.claim(bid.bid_id, block=105)

    def test_claim_requires_exit(self, auction):
        bid = auction.submit_bid(Q96, True, 1000, ALICE, block=0)
        with pytest.raises(NotExited):
            auction.claim(bid.bid_id, block=110)

    def test_claim_transfers_units(self, auction):
        bid = auction.submit_bid(Q96, True, 1000, ALICE, block=0)
        auction.exit_bid(bid.bid_id, block=100)
        assert auction.claim(bid.bid_id, block=110) == 1000
        assert auction.units.balance_of(ALICE) == 1000
        assert bid.tokens_filled == 0
        assert bid.status == BidStatus.CLAIMED

    def test_double_claim(self, auction):
        bid = auction.submit_bid(Q96, True, 1000, ALICE, block=0)
        auction.exit_bid(bid.bid_id, block=100)
        auction.claim(bid.bid_id, block=110)
        with pytest.raises(NotClaimable):
            auction.claim(bid.bid_id, block=111)

    def test_claim_batch(self, auction):
        first = auction.submit_bid(Q96, True, 600, ALICE, block=0)
        second = auction.submit_bid(Q96, True, 400, ALICE, block=0)
        auction.exit_bid(first.bid_id, block=100)
        auction.exit_bid(second.bid_id, block=100)

        assert auction.claim_batch(ALICE, [first.bid_id, second.bid_id], block=110) == 1000
        assert auction.units.balance_of(ALICE) == 1000
        assert len(auction.events.of_type(EventType.TOKENS_CLAIMED)) == 2

    def test_claim_batch_wrong_owner(self, auction):
        mine = auction.submit_bid(Q96, True, 600, ALICE, block=0)
        theirs = auction.submit_bid(Q96, True, 400, BOB, block=0)
        auction.exit_bid(mine.bid_id, block=100)
        auction.exit_bid(theirs.bid_id, block=100)

        with pytest.raises(NotBidOwner):
            auction.claim_batch(ALICE, [mine.bid_id, theirs.bid_id], block=110)
        assert mine.status == BidStatus.EXITED

    def test_mixed_case_owner_paid_once(self, auction):
        mixed = "0x" + "aA" * 20
        auction.currency.mint(mixed, 1000)
        bid = auction.submit_bid(Q96, True, 1000, mixed, block=0)
        assert bid.owner == mixed.lower()

        auction.exit_bid(bid.bid_id, block=100)
        assert auction.claim_batch(mixed, [bid.bid_id], block=110) == 1000
        assert auction.units.balance_of(mixed.lower()) == 1000
        assert auction.units.balance_of(mixed) == 0

    def test_claim_without_graduation(self):
        auction = make_auction(graduation_threshold_mps=10_000_000)
        bid = auction.submit_bid(2 * Q96, True, 500, ALICE, block=0)
        bid = auction.exit_bid(bid.bid_id, block=100)
        assert bid.exit_path == ExitPath.REFUNDED

        assert auction.claim(bid.bid_id, block=110) == 0
        assert bid.status == BidStatus.CLAIMED
        assert auction.currency.balance_of(ALICE) == 100_000
        assert auction.units.balance_of(ALICE) == 0


# =============================================================================
# Sweep & Graduation Tests
# =============================================================================


class TestSweeps:
    """Tests for graduation and sweeping."""

    def test_is_graduated_requires_end(self, auction):
        auction.recompute(50)
        with pytest.raises(AuctionNotEnded):
            auction.is_graduated()

    def test_sweep_before_end(self, auction):
        with pytest.raises(AuctionNotEnded):
            auction.sweep_currency(50)

    def test_graduated_sweeps(self, auction):
        auction.submit_bid(Q96, True, 500, ALICE, block=0)
        assert auction.sweep_currency(100) == 500
        assert auction.currency.balance_of(FUNDS) == 500
        assert auction.sweep_unsold_units(100) == 500
        assert auction.units.balance_of(UNSOLD) == 500

    def test_sweep_twice(self, auction):
        auction.submit_bid(Q96, True, 500, ALICE, block=0)
        auction.sweep_currency(100)
        auction.sweep_unsold_units(100)
        with pytest.raises(AlreadySwept):
            auction.sweep_currency(101)
        with pytest.raises(AlreadySwept):
            auction.sweep_unsold_units(101)

    def test_not_graduated_sweeps(self):
        auction = make_auction(graduation_threshold_mps=5_000_000)
        auction.submit_bid(Q96, True, 499, ALICE, block=0)
        with pytest.raises(NotGraduated):
            auction.sweep_currency(100)
        assert auction.sweep_unsold_units(100) == 1000

    def test_required_currency_raised(self):
        auction = make_auction(required_currency_raised=600)
        auction.submit_bid(Q96, True, 500, ALICE, block=0)
        auction.recompute(100)
        assert not auction.is_graduated()

    def test_stats(self, outbid_auction):
        auction, _, _ = outbid_auction
        stats = auction.stats()
        assert stats["clearing_price"] == 4 * Q96
        assert stats["bids"] == 2
        assert stats["active_bids"] == 2
        assert stats["checkpoints"] == 3
