"""
Continuous Clearing Auction - Sells a fixed supply gradually at one price.

Supply is released block by block according to the issuance schedule. At
every checkpoint a single clearing price is discovered from the demand
registered in the tick book, and every bid above it is filled for the
blocks that clear at that price.

Lifecycle:
1. Bidding window [start_block, end_block): bids lock currency
2. Exits: outbid bids at any time, everyone else after end_block
3. Claims: from claim_block, units (graduated) or refunds (not graduated)
4. Sweeps: raised currency and unsold units go to their recipients

Every operation is all-or-nothing: the pending checkpoint and the call's
own effects are committed together, or not at all. Events are delivered
only after the operation succeeds.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from cca.core.assets import Asset
from cca.core.auction.bids import (
    Bid,
    BidStatus,
    ExitPath,
    effective_amount_q96,
    fully_filled,
    partially_filled,
    required_currency,
)
from cca.core.auction.checkpoints import Checkpoint, CheckpointLedger
from cca.core.auction.clearing import ClearingPlan, plan_checkpoint
from cca.core.auction.steps import IssuanceSchedule
from cca.core.auction.ticks import TickLedger
from cca.core.config import AuctionConfig, EngineConfig
from cca.core.errors import (
    AlreadyExited,
    AlreadySwept,
    AuctionError,
    AuctionIsOver,
    AuctionNotEnded,
    AuctionNotStarted,
    BidBelowClearingPrice,
    CannotExitBid,
    ClaimBlockNotReached,
    InvalidAddress,
    InvalidAmount,
    InvalidBidPrice,
    InvalidCheckpointHint,
    NotBidOwner,
    NotClaimable,
    NotExited,
    NotGraduated,
    StaleBlock,
    UnknownBid,
    ValidationHookRejected,
)
from cca.core.events import EventBus, EventType
from cca.core.fixed_point import MAX_BID_PRICE, MPS, Q96, div_up, fraction_of
from cca.core.hooks import BidParameters, ValidationHook
from cca.utils.logger import get_auction_logger
from cca.utils.validation import (
    validate_address,
    validate_amount,
    validate_block_number,
    validate_bytes,
    validate_integer,
    MAX_HOOK_DATA_SIZE,
)


class Auction:
    """
    One continuous clearing auction.

    Attributes:
        config: Auction parameters
        schedule: Issuance schedule
        ticks: Tick book
        checkpoints: Checkpoint chain
        bids: Bid id -> Bid
        events: Event bus
        auction_id: Factory-assigned identifier, if any
    """

    def __init__(
        self,
        config: AuctionConfig,
        currency: Asset,
        units: Asset,
        validation_hook: Optional[ValidationHook] = None,
        event_bus: Optional[EventBus] = None,
        engine_config: Optional[EngineConfig] = None,
        auction_id: Optional[str] = None,
    ):
        config.validate()
        self.config = config
        self.auction_id = auction_id
        self.log = get_auction_logger(auction_id)
        self.schedule = IssuanceSchedule(config.steps, config.start_block, config.end_block)
        self.ticks = TickLedger(config.floor_price, config.tick_spacing)
        self.checkpoints = CheckpointLedger()

        self.currency = currency
        self.units = units
        self.validation_hook = validation_hook
        self.events = event_bus if event_bus is not None else EventBus()
        self.engine_config = engine_config if engine_config is not None else EngineConfig()

        self.bids: Dict[int, Bid] = {}
        self._next_bid_id = 0
        self.currency_swept = False
        self.units_swept = False
        self._pending_events: List[Tuple[EventType, int, Dict[str, Any]]] = []

        self.log.info(
            f"Auction created: supply={config.total_supply}, floor={config.floor_price}, "
            f"blocks=[{config.start_block}, {config.end_block}), claim={config.claim_block}"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def total_supply(self) -> int:
        return self.config.total_supply

    @property
    def floor_price(self) -> int:
        return self.config.floor_price

    @property
    def tick_spacing(self) -> int:
        return self.config.tick_spacing

    @property
    def start_block(self) -> int:
        return self.config.start_block

    @property
    def end_block(self) -> int:
        return self.config.end_block

    @property
    def claim_block(self) -> int:
        return self.config.claim_block

    @property
    def latest_checkpoint(self) -> Optional[Checkpoint]:
        return self.checkpoints.latest

    @property
    def clearing_price(self) -> int:
        """Clearing price at the latest checkpoint (floor before the first)."""
        head = self.checkpoints.latest
        return head.clearing_price if head is not None else self.floor_price

    @property
    def graduation_units(self) -> int:
        """Units that must sell for the auction to graduate."""
        return fraction_of(self.total_supply, self.config.graduation_threshold_mps, round_up=True)

    # =========================================================================
    # Checkpointing
    # =========================================================================

    def _checkpoint_block(self, block: int) -> int:
        valid, err = validate_block_number(block, "block")
        if not valid:
            raise AuctionNotStarted(err)
        if block < self.start_block:
            raise AuctionNotStarted(f"Block {block} precedes start block {self.start_block}")
        head = self.checkpoints.latest
        if head is not None and block < head.block:
            raise StaleBlock(f"Block {block} precedes latest checkpoint {head.block}")
        return min(block, self.end_block)

    def _plan(self, block: int) -> Optional[ClearingPlan]:
        """Plan the checkpoint at `block`, or None if it already exists."""
        at = self._checkpoint_block(block)
        head = self.checkpoints.latest
        if head is not None and head.block == at:
            return None
        return plan_checkpoint(at, head, self.ticks, self.schedule, self.total_supply)

    def _emit(self, event_type: EventType, block: int, **data: Any) -> None:
        self._pending_events.append((event_type, block, data))

    @contextmanager
    def _operation(self, block: int, action: str) -> Iterator[Checkpoint]:
        """
        Stage the checkpoint at `block` for the duration of one operation.

        Yields the head checkpoint the operation runs against. If the body
        raises, the staged checkpoint and tick walk are rolled back and no
        events are delivered.
        """
        plan = self._plan(block)
        saved_walk = (
            self.ticks.next_active_price,
            self.ticks.currency_demand_above_q96,
            self.ticks.unit_demand_above_q96,
        )
        self._pending_events = []

        if plan is not None:
            self.ticks.apply_walk(plan.walk)
            self.checkpoints.append(plan.checkpoint)
            cp = plan.checkpoint
            self._emit(
                EventType.CHECKPOINT_UPDATED,
                cp.block,
                clearing_price=cp.clearing_price,
                total_cleared=cp.total_cleared,
                cumulative_mps=cp.cumulative_mps,
            )

        try:
            yield self.checkpoints.latest
        except AuctionError as e:
            self.log.warning(f"{action} rejected at block {block}: {e}")
            self._rollback(plan, saved_walk)
            raise
        except Exception:
            self._rollback(plan, saved_walk)
            raise

        if plan is not None:
            self.schedule.advance_to(plan.checkpoint.block)
            if plan.walk.ticks_crossed:
                self.log.info(
                    f"Clearing price {plan.checkpoint.clearing_price} at block "
                    f"{plan.checkpoint.block} ({plan.walk.ticks_crossed} tick(s) crossed)"
                )

        pending, self._pending_events = self._pending_events, []
        for event_type, event_block, data in pending:
            self.events.emit(event_type, event_block, **data)

    def _rollback(self, plan: Optional[ClearingPlan], saved_walk: Tuple[int, int, int]) -> None:
        if plan is not None:
            self.checkpoints.discard_latest()
            (
                self.ticks.next_active_price,
                self.ticks.currency_demand_above_q96,
                self.ticks.unit_demand_above_q96,
            ) = saved_walk
        self._pending_events = []

    def recompute(self, block: int) -> Checkpoint:
        """
        Bring the auction up to date at `block`.

        Idempotent within a block; blocks past the end clamp to end_block.

        Raises:
            AuctionNotStarted: block precedes start_block
            StaleBlock: block precedes the latest checkpoint
        """
        with self._operation(block, "recompute") as head:
            return head

    def checkpoint_at(self, block: int) -> Optional[Checkpoint]:
        """Checkpoint whose clearing price governs issuance block `block`."""
        return self.checkpoints.governing(block)

    # =========================================================================
    # Graduation
    # =========================================================================

    def _graduated(self, checkpoint: Checkpoint) -> bool:
        return (
            checkpoint.total_cleared >= self.graduation_units
            and checkpoint.currency_raised >= self.config.required_currency_raised
        )

    def _final_checkpoint(self, head: Checkpoint) -> Checkpoint:
        if head.block < self.end_block:
            raise AuctionNotEnded(f"Auction ends at block {self.end_block}")
        return head

    def is_graduated(self) -> bool:
        """
        Whether the auction sold enough units and raised enough currency.

        Raises:
            AuctionNotEnded: the final checkpoint has not been written
        """
        head = self.checkpoints.latest
        if head is None:
            raise AuctionNotEnded(f"Auction ends at block {self.end_block}")
        return self._graduated(self._final_checkpoint(head))

    # =========================================================================
    # Bid Submission
    # =========================================================================

    def _check_bid_inputs(self, max_price: int, amount: int, owner: str, hook_data: bytes) -> None:
        valid, err = validate_amount(amount)
        if not valid or amount == 0:
            raise InvalidAmount(err or "Bid amount must be positive")

        valid, err = validate_integer(max_price, "max_price", 1, 2**256 - 1)
        if not valid:
            raise InvalidBidPrice(err)
        if max_price < self.floor_price:
            raise InvalidBidPrice(f"Bid price {max_price} below floor {self.floor_price}")
        if max_price > MAX_BID_PRICE:
            raise InvalidBidPrice(f"Bid price {max_price} above maximum {MAX_BID_PRICE}")
        self.ticks.check_aligned(max_price)

        valid, err = validate_address(owner, "owner")
        if not valid:
            raise InvalidAddress(err)

        valid, err = validate_bytes(hook_data, "hook_data", MAX_HOOK_DATA_SIZE)
        if not valid:
            raise ValidationHookRejected(err)

    def submit_bid(
        self,
        max_price: int,
        exact_in: bool,
        amount: int,
        owner: str,
        block: int,
        prev_tick_price: Optional[int] = None,
        hook_data: bytes = b"",
        sender: Optional[str] = None,
    ) -> Bid:
        """
        Place a bid and lock its currency.

        Args:
            max_price: Highest acceptable price (Q96, tick aligned)
            exact_in: True to spend `amount` currency, False to buy `amount` units
            amount: Currency (exact-in) or units (exact-out)
            owner: Account that receives fills and refunds
            block: Current block number
            prev_tick_price: Existing tick immediately below max_price, if known
            hook_data: Opaque data passed to the validation hook
            sender: Account paying the currency (defaults to owner)

        Returns:
            The new Bid
        """
        self._check_bid_inputs(max_price, amount, owner, hook_data)
        payer = sender if sender is not None else owner
        owner = owner.lower()

        if isinstance(block, int) and block >= self.end_block:
            raise AuctionIsOver(f"Auction ended at block {self.end_block}")

        with self._operation(block, "submit_bid") as head:
            if head.cumulative_mps >= MPS:
                raise AuctionIsOver("All supply has been issued")
            if max_price < head.clearing_price:
                raise BidBelowClearingPrice(
                    f"Bid price {max_price} below clearing price {head.clearing_price}"
                )
            self.ticks.validate_insertion(prev_tick_price, max_price)

            if self.validation_hook is not None:
                params = BidParameters(
                    max_price=max_price,
                    exact_in=exact_in,
                    amount=amount,
                    owner=owner,
                    sender=payer,
                    block=block,
                    hook_data=hook_data,
                )
                if not self.validation_hook.validate(params):
                    raise ValidationHookRejected(f"Bid from {owner[:10]} rejected by validation hook")

            locked = required_currency(exact_in, amount, max_price)
            effective = effective_amount_q96(amount, head.cumulative_mps)
            self.ticks.check_demand(max_price, exact_in, effective, head.clearing_price)

            # All checks done; a failed collect moves nothing
            self.currency.collect(payer, locked)

            tick, created = self.ticks.get_or_create_tick(prev_tick_price, max_price, head.clearing_price)
            if created:
                self._emit(EventType.TICK_INITIALIZED, head.block, price=max_price)
            self.ticks.add_demand(max_price, exact_in, effective)

            bid = Bid(
                bid_id=self._next_bid_id,
                owner=owner,
                max_price=max_price,
                exact_in=exact_in,
                amount=amount,
                start_block=head.block,
                start_cumulative_mps=head.cumulative_mps,
                effective_amount_q96=effective,
                locked_currency=locked,
            )
            self.bids[bid.bid_id] = bid
            self._next_bid_id += 1

            self._emit(
                EventType.BID_SUBMITTED,
                head.block,
                bid_id=bid.bid_id,
                owner=owner,
                price=max_price,
                exact_in=exact_in,
                amount=amount,
            )

        self.log.info(
            f"Bid {bid.bid_id} from {owner[:10]}: {'in' if exact_in else 'out'} {amount} "
            f"@ {max_price} (block {bid.start_block})"
        )
        return bid

    # =========================================================================
    # Exit
    # =========================================================================

    def _get_bid(self, bid_id: int) -> Bid:
        bid = self.bids.get(bid_id)
        if bid is None:
            raise UnknownBid(f"No bid with id {bid_id}")
        return bid

    def _search_exit_checkpoints(self, bid: Bid) -> Tuple[Checkpoint, Optional[Checkpoint]]:
        """
        Walk back from the head to find the last fully filled checkpoint
        and the first outbid checkpoint of `bid`.
        """
        last_fully_filled = None
        outbid = None
        limit = self.engine_config.max_checkpoint_traversal
        for checkpoint in self.checkpoints.walk_back(limit):
            if checkpoint.block <= bid.start_block:
                last_fully_filled = checkpoint
                break
            if checkpoint.clearing_price > bid.max_price:
                outbid = checkpoint
            elif checkpoint.clearing_price < bid.max_price:
                last_fully_filled = checkpoint
                break

        if last_fully_filled is None:
            last_fully_filled = self.checkpoints.require(bid.start_block)
        return last_fully_filled, outbid

    def _verify_last_fully_filled(self, bid: Bid, block: int) -> Checkpoint:
        checkpoint = self.checkpoints.require(block)
        if checkpoint.block < bid.start_block:
            raise InvalidCheckpointHint(f"Checkpoint {block} precedes bid start {bid.start_block}")
        if checkpoint.block > bid.start_block and checkpoint.clearing_price >= bid.max_price:
            raise InvalidCheckpointHint(f"Bid was not fully filled at checkpoint {block}")
        following = self.checkpoints.next_of(checkpoint)
        if following is None or following.clearing_price < bid.max_price:
            raise InvalidCheckpointHint(f"Checkpoint {block} is not the last fully filled one")
        return checkpoint

    def _verify_outbid(self, bid: Bid, block: int) -> Checkpoint:
        checkpoint = self.checkpoints.require(block)
        if checkpoint.block <= bid.start_block:
            raise InvalidCheckpointHint(f"Checkpoint {block} does not follow bid start {bid.start_block}")
        if checkpoint.clearing_price <= bid.max_price:
            raise InvalidCheckpointHint(f"Bid was not outbid at checkpoint {block}")
        previous = self.checkpoints.prev_of(checkpoint)
        if previous is None or previous.clearing_price > bid.max_price:
            raise InvalidCheckpointHint(f"Checkpoint {block} is not the first outbid one")
        return checkpoint

    def _resolve_exit_checkpoints(
        self,
        bid: Bid,
        last_fully_filled_block: Optional[int],
        outbid_block: Optional[int],
        need_outbid: bool,
    ) -> Tuple[Checkpoint, Optional[Checkpoint]]:
        last_fully_filled = outbid = None
        if last_fully_filled_block is not None:
            last_fully_filled = self._verify_last_fully_filled(bid, last_fully_filled_block)
        if outbid_block is not None:
            outbid = self._verify_outbid(bid, outbid_block)

        if last_fully_filled is None or (need_outbid and outbid is None):
            found_last, found_outbid = self._search_exit_checkpoints(bid)
            last_fully_filled = last_fully_filled or found_last
            outbid = outbid or found_outbid

        if outbid is not None and outbid.block <= last_fully_filled.block:
            raise InvalidCheckpointHint(
                f"Outbid checkpoint {outbid.block} does not follow {last_fully_filled.block}"
            )
        return last_fully_filled, outbid

    def exit_bid(
        self,
        bid_id: int,
        block: int,
        last_fully_filled_block: Optional[int] = None,
        outbid_block: Optional[int] = None,
    ) -> Bid:
        """
        Settle a bid and refund the currency it did not spend.

        Outbid bids may exit at any time; every other bid exits after the
        auction ends. Checkpoint hints are verified; when omitted they are
        searched for, up to the engine's traversal limit.

        Args:
            bid_id: Bid to exit
            block: Current block number
            last_fully_filled_block: Last checkpoint at which the bid was strictly above clearing
            outbid_block: First checkpoint at which clearing rose above the bid

        Returns:
            The settled Bid
        """
        bid = self._get_bid(bid_id)
        if bid.is_exited:
            raise AlreadyExited(f"Bid {bid_id} already exited")

        with self._operation(block, "exit_bid") as head:
            ended = head.block >= self.end_block
            start = self.checkpoints.require(bid.start_block)

            if ended and not self._graduated(head):
                path = ExitPath.REFUNDED
                units, spent = 0, 0
            elif head.clearing_price > bid.max_price:
                path = ExitPath.OUTBID
                last_fully_filled, outbid = self._resolve_exit_checkpoints(
                    bid, last_fully_filled_block, outbid_block, need_outbid=True
                )
                if outbid is None:
                    raise InvalidCheckpointHint(f"No outbid checkpoint found for bid {bid_id}")
                units, spent = fully_filled(bid, start, last_fully_filled)
                at_clearing_units, at_clearing_spent = partially_filled(
                    bid, last_fully_filled, self.checkpoints.prev_of(outbid)
                )
                units += at_clearing_units
                spent += at_clearing_spent
            elif not ended:
                raise CannotExitBid(f"Bid {bid_id} is still above clearing price")
            elif head.clearing_price < bid.max_price:
                path = ExitPath.FULLY_FILLED
                units, spent = fully_filled(bid, start, head)
            else:
                path = ExitPath.PARTIALLY_FILLED
                last_fully_filled, _ = self._resolve_exit_checkpoints(
                    bid, last_fully_filled_block, None, need_outbid=False
                )
                units, spent = fully_filled(bid, start, last_fully_filled)
                at_clearing_units, at_clearing_spent = partially_filled(bid, last_fully_filled, head)
                units += at_clearing_units
                spent += at_clearing_spent

            spent = min(spent, bid.locked_currency)
            refund = bid.locked_currency - spent
            self.currency.transfer(bid.owner, refund)

            bid.status = BidStatus.EXITED
            bid.exit_path = path
            bid.exited_block = head.block
            bid.tokens_filled = units
            bid.currency_spent = spent
            bid.refunded = refund

            self._emit(
                EventType.BID_EXITED,
                head.block,
                bid_id=bid_id,
                owner=bid.owner,
                tokens_filled=units,
                currency_refunded=refund,
            )

        self.log.info(
            f"Bid {bid_id} exited ({path.name.lower()}): filled={bid.tokens_filled}, "
            f"spent={bid.currency_spent}, refunded={bid.refunded}"
        )
        return bid

    # =========================================================================
    # Claims
    # =========================================================================

    def _check_claimable(self, bid: Bid) -> None:
        if bid.status == BidStatus.SUBMITTED:
            raise NotExited(f"Bid {bid.bid_id} has not exited")
        if bid.status == BidStatus.CLAIMED:
            raise NotClaimable(f"Bid {bid.bid_id} already claimed")

    def _settle_claims(self, bids: List[Bid], graduated: bool, block: int) -> None:
        """Zero the claimed fills and mark the bids claimed."""
        for bid in bids:
            claimed = bid.tokens_filled if graduated else 0
            if not graduated:
                bid.refunded += bid.currency_spent
                bid.currency_spent = 0
            bid.tokens_filled = 0
            bid.status = BidStatus.CLAIMED
            self._emit(
                EventType.TOKENS_CLAIMED,
                block,
                bid_id=bid.bid_id,
                owner=bid.owner,
                tokens_filled=claimed,
            )

    def claim(self, bid_id: int, block: int) -> int:
        """
        Pay an exited bid its units, or its spent currency if not graduated.

        Returns:
            Units transferred
        """
        bid = self._get_bid(bid_id)
        if isinstance(block, int) and block < self.claim_block:
            raise ClaimBlockNotReached(f"Claims open at block {self.claim_block}")

        with self._operation(block, "claim") as head:
            self._check_claimable(bid)
            graduated = self._graduated(self._final_checkpoint(head))
            amount = bid.tokens_filled if graduated else 0
            refund = 0 if graduated else bid.currency_spent

            if graduated:
                self.units.transfer(bid.owner, amount)
            else:
                self.currency.transfer(bid.owner, refund)
            self._settle_claims([bid], graduated, head.block)

        self.log.info(f"Bid {bid_id} claimed: units={amount}, refund={refund}")
        return amount

    def claim_batch(self, owner: str, bid_ids: List[int], block: int) -> int:
        """
        Claim several exited bids of one owner in a single transfer.

        Returns:
            Units transferred
        """
        bids = [self._get_bid(bid_id) for bid_id in bid_ids]
        payee = owner.lower()
        if isinstance(block, int) and block < self.claim_block:
            raise ClaimBlockNotReached(f"Claims open at block {self.claim_block}")
        if len(set(bid_ids)) != len(bid_ids):
            raise NotClaimable("Duplicate bid ids in batch")

        with self._operation(block, "claim_batch") as head:
            for bid in bids:
                if bid.owner != payee:
                    raise NotBidOwner(f"Bid {bid.bid_id} does not belong to {owner[:10]}")
                self._check_claimable(bid)
            graduated = self._graduated(self._final_checkpoint(head))

            units = sum(bid.tokens_filled for bid in bids) if graduated else 0
            refund = 0 if graduated else sum(bid.currency_spent for bid in bids)
            if graduated:
                self.units.transfer(payee, units)
            else:
                self.currency.transfer(payee, refund)
            self._settle_claims(bids, graduated, head.block)

        self.log.info(f"Claimed {len(bids)} bid(s) for {owner[:10]}: units={units}, refund={refund}")
        return units

    # =========================================================================
    # Sweeps
    # =========================================================================

    def sweep_currency(self, block: int) -> int:
        """
        Send the currency raised to the funds recipient (graduated only, once).

        Returns:
            Currency transferred
        """
        with self._operation(block, "sweep_currency") as head:
            final = self._final_checkpoint(head)
            if not self._graduated(final):
                raise NotGraduated("Auction did not graduate")
            if self.currency_swept:
                raise AlreadySwept("Currency already swept")

            amount = final.currency_raised
            self.currency.transfer(self.config.funds_recipient, amount)
            self.currency_swept = True
            self._emit(
                EventType.CURRENCY_SWEPT,
                final.block,
                recipient=self.config.funds_recipient,
                amount=amount,
            )

        self.log.info(f"Swept {amount} currency to {self.config.funds_recipient[:10]}")
        return amount

    def sweep_unsold_units(self, block: int) -> int:
        """
        Send unsold units to the units recipient (everything if not graduated).

        Returns:
            Units transferred
        """
        with self._operation(block, "sweep_unsold_units") as head:
            final = self._final_checkpoint(head)
            if self.units_swept:
                raise AlreadySwept("Unsold units already swept")

            if self._graduated(final):
                sold = div_up(final.total_cleared_q96, Q96)
                amount = self.total_supply - min(sold, self.total_supply)
            else:
                amount = self.total_supply

            self.units.transfer(self.config.units_recipient, amount)
            self.units_swept = True
            self._emit(
                EventType.TOKENS_SWEPT,
                final.block,
                recipient=self.config.units_recipient,
                amount=amount,
            )

        self.log.info(f"Swept {amount} unsold units to {self.config.units_recipient[:10]}")
        return amount

    # =========================================================================
    # Queries
    # =========================================================================

    def get_bid(self, bid_id: int) -> Bid:
        return self._get_bid(bid_id)

    def bids_of(self, owner: str) -> List[Bid]:
        """All bids owned by `owner`, in submission order."""
        owner = owner.lower()
        return [bid for bid in self.bids.values() if bid.owner.lower() == owner]

    def stats(self) -> dict:
        """Summary of the auction's current state."""
        head = self.checkpoints.latest
        return {
            "total_supply": self.total_supply,
            "clearing_price": self.clearing_price,
            "latest_block": head.block if head is not None else None,
            "total_cleared": head.total_cleared if head is not None else 0,
            "currency_raised": head.currency_raised if head is not None else 0,
            "cumulative_mps": head.cumulative_mps if head is not None else 0,
            "checkpoints": len(self.checkpoints),
            "ticks": len(self.ticks),
            "bids": len(self.bids),
            "active_bids": sum(1 for bid in self.bids.values() if not bid.is_exited),
            "currency_swept": self.currency_swept,
            "units_swept": self.units_swept,
        }
