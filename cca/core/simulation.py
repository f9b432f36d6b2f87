"""
Scenario Runner - Replays a block-keyed script against a fresh auction.

A scenario is a JSON document:

    {
      "name": "two-bidders",
      "setup": {
        "total_supply": 1000,
        "creator": "0x...",
        "params": { ...AuctionParameters... }
      },
      "bidders": [
        {"address": "0x...", "label": "alice", "balance": 5000,
         "bids": [{"at_block": 10, "amount": 100, "side": "input",
                   "price": {"type": "tick", "value": 2}}],
         "recurring_bids": [{"start_block": 20, "interval_blocks": 10,
                             "occurrences": 3, "amount": 100,
                             "price": {"type": "tick", "value": 2},
                             "amount_factor": 2, "price_factor": 1.5}]}
      ],
      "groups": [
        {"label_prefix": "crowd", "count": 4, "start_block": 5,
         "rotation_interval_blocks": 2, "between_rounds_blocks": 10,
         "rounds": 3, "balance": 1000, "amount": 50,
         "price": {"type": "tick", "value": 3}}
      ],
      "actions": [{"at_block": 200, "method": "exit_all"}],
      "assertions": [{"at_block": 200, "type": "auction", "is_graduated": true}]
    }

Within a block, bids run first (in file order), then actions, then
assertions. A bid or action with `expect_revert` must fail with that
error name (or the name of one of its base classes).

Tick prices count from the floor: tick 1 is the floor, tick n is
floor + (n - 1) * tick_spacing.

Recurring bid k (from 0) is placed at start_block + k * interval_blocks,
for amount * amount_factor^k at price * price_factor^k rounded up onto
the tick grid. Group member i bids in round r at
start_block + r * (rotation_interval_blocks + between_rounds_blocks)
+ i * rotation_interval_blocks. Group members get addresses derived
from keccak256 of their label.

Assertion types:
- balance: {"token", "address", "expected", "variance"?}
- total_supply: {"token", "expected", "variance"?}
- event: {"event_name", "expected_args"?}, matched against the events
  emitted at this block (clamped to end_block, like checkpoints)
- auction: any of is_graduated, clearing_price, currency_raised,
  total_cleared, and latest_checkpoint: {field: value}

A numeric expectation is either a number or {"amount", "variation"}.
Variances are ratios ("0.05") or percentages ("5%") of the expected value.
"""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Callable, Dict, List, Optional, Tuple

from cca.core.assets import InMemoryAsset
from cca.core.auction.auction import Auction
from cca.core.auction.bids import Bid, BidStatus
from cca.core.config import EngineConfig
from cca.core.errors import AuctionError, ConfigurationError
from cca.core.events import EventType
from cca.core.factory import AuctionFactory, parse_parameters
from cca.core.fixed_point import ceil_to_multiple
from cca.utils.hashing import keccak256, to_address
from cca.utils.logger import get_logger

logger = get_logger("simulation")

ACTION_METHODS = (
    "checkpoint",
    "exit",
    "exit_all",
    "claim",
    "claim_all",
    "sweep_currency",
    "sweep_unsold_units",
    "transfer",
)

ASSERTION_TYPES = ("balance", "total_supply", "event", "auction")

EVENT_NAMES = {event_type.value: event_type for event_type in EventType}


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class SimulationResult:
    """Outcome of a scenario run."""
    name: str
    auction: Auction
    currency: InMemoryAsset
    units: InMemoryAsset
    bids: Dict[str, Bid] = field(default_factory=dict)
    log: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures


# =============================================================================
# Tolerances
# =============================================================================


def parse_variance(variance: Any) -> Fraction:
    """Parse "5%", "0.05" or 0.05 into a ratio."""
    if variance is None:
        return Fraction(0)
    text = str(variance).strip()
    try:
        if text.endswith("%"):
            ratio = Fraction(text[:-1]) / 100
        else:
            ratio = Fraction(text)
    except ValueError:
        raise ConfigurationError(f"Invalid variance: {variance!r}")
    if ratio < 0:
        raise ConfigurationError(f"Variance must not be negative: {variance!r}")
    return ratio


def expected_amount(value: Any, variance: Any = None) -> Tuple[int, int]:
    """
    Resolve an expectation into (expected, tolerance).

    `value` is a plain number or a {"amount", "variation"} mapping; a
    variation inside the mapping takes precedence over `variance`.
    """
    if isinstance(value, dict):
        variance = value.get("variation", variance)
        value = value["amount"]
    expected = int(value)
    tolerance = int(abs(expected) * parse_variance(variance))
    return expected, tolerance


# =============================================================================
# Runner
# =============================================================================


class ScenarioRunner:
    """
    Builds an auction from a scenario's setup and replays its script.

    Attributes:
        scenario: Parsed scenario document
        engine_config: Settings for the deployed auction
        labels: Label -> address for named bidders and group members
    """

    def __init__(self, scenario: Dict[str, Any], engine_config: Optional[EngineConfig] = None):
        if "setup" not in scenario:
            raise ConfigurationError("Scenario has no setup section")
        self.scenario = scenario
        self.engine_config = engine_config
        self.labels: Dict[str, str] = {}

    # =========================================================================
    # Setup
    # =========================================================================

    @staticmethod
    def group_members(group: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Bidder entries for a group, with addresses derived from their labels."""
        prefix = group["label_prefix"]
        return [
            {
                "address": to_address(keccak256(f"{prefix}{i}".encode())),
                "label": f"{prefix}{i}",
                "balance": group.get("balance", 0),
            }
            for i in range(int(group["count"]))
        ]

    def _all_bidders(self) -> List[Dict[str, Any]]:
        bidders = list(self.scenario.get("bidders", []))
        for group in self.scenario.get("groups", []):
            bidders.extend(self.group_members(group))
        return bidders

    def _deploy(self) -> SimulationResult:
        setup = self.scenario["setup"]
        creator = setup.get("creator", "0x" + "cc" * 20).lower()
        total_supply = int(setup["total_supply"])
        units_symbol = setup.get("units_symbol", "UNIT")

        factory = AuctionFactory(self.engine_config)
        params = parse_parameters(setup["params"])
        auction_id = factory.compute_auction_id(units_symbol, total_supply, params)
        custodian = to_address(bytes.fromhex(auction_id[2:]))

        currency = InMemoryAsset(setup.get("currency_symbol", "CUR"), custodian)
        units = InMemoryAsset(units_symbol, custodian)
        units.mint(creator, total_supply)

        for bidder in self._all_bidders():
            address = bidder["address"].lower()
            self.labels[bidder.get("label", address)] = address
            currency.mint(address, int(bidder.get("balance", 0)))

        auction = factory.create_auction(creator, units, currency, total_supply, params)
        return SimulationResult(
            name=self.scenario.get("name", "scenario"),
            auction=auction,
            currency=currency,
            units=units,
        )

    def _price(self, auction: Auction, spec: Dict[str, Any], scale: Fraction = Fraction(1)) -> int:
        value = int(spec["value"])
        if spec.get("type", "raw") == "tick":
            value = auction.floor_price + (value - 1) * auction.tick_spacing
        if scale == 1:
            return value
        scaled = value * scale
        return ceil_to_multiple(-(-scaled.numerator // scaled.denominator), auction.tick_spacing)

    def _address(self, label: str) -> str:
        return self.labels.get(label, label).lower()

    def _asset(self, result: SimulationResult, token: str) -> InMemoryAsset:
        if token in ("currency", result.currency.symbol):
            return result.currency
        if token in ("units", result.units.symbol):
            return result.units
        raise ConfigurationError(f"Unknown token: {token}")

    # =========================================================================
    # Script
    # =========================================================================

    def _bid_entries(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """Every scripted bid as (entry, bidder), with a unique label each."""
        entries = []
        for bidder in self.scenario.get("bidders", []):
            name = bidder.get("label", bidder["address"])
            for index, bid in enumerate(bidder.get("bids", [])):
                entry = dict(bid)
                entry.setdefault("label", f"{name}#{index}")
                entries.append((entry, bidder))

            for r, recurring in enumerate(bidder.get("recurring_bids", [])):
                amount_factor = Fraction(str(recurring.get("amount_factor", 1)))
                price_factor = Fraction(str(recurring.get("price_factor", 1)))
                for k in range(int(recurring["occurrences"])):
                    amount = int(Fraction(str(recurring["amount"])) * amount_factor**k)
                    entry = {
                        "at_block": int(recurring["start_block"]) + k * int(recurring["interval_blocks"]),
                        "amount": amount,
                        "side": recurring.get("side", "input"),
                        "price": recurring["price"],
                        "price_scale": price_factor**k,
                        "hook_data": recurring.get("hook_data", ""),
                        "label": f"{name}#r{r}.{k}",
                    }
                    if "prev_tick_price" in recurring:
                        entry["prev_tick_price"] = recurring["prev_tick_price"]
                    entries.append((entry, bidder))

        for group in self.scenario.get("groups", []):
            members = self.group_members(group)
            rotation = int(group["rotation_interval_blocks"])
            between = int(group.get("between_rounds_blocks", 0))
            for round_index in range(int(group["rounds"])):
                for i, member in enumerate(members):
                    entry = {
                        "at_block": int(group["start_block"]) + round_index * (rotation + between) + i * rotation,
                        "amount": group["amount"],
                        "side": group.get("side", "input"),
                        "price": group["price"],
                        "hook_data": group.get("hook_data", ""),
                        "label": f"{member['label']}#{round_index}",
                    }
                    entries.append((entry, member))
        return entries

    def _collect(self) -> Dict[int, List[Tuple[int, str, Dict[str, Any], Dict[str, Any]]]]:
        """Group every scripted entry by block, keeping the run order."""
        order = {"bid": 0, "action": 1, "assertion": 2}
        timeline: Dict[int, List[Tuple[int, str, Dict[str, Any], Dict[str, Any]]]] = {}

        for entry, bidder in self._bid_entries():
            timeline.setdefault(int(entry["at_block"]), []).append((order["bid"], "bid", entry, bidder))
        for action in self.scenario.get("actions", []):
            if action.get("method") not in ACTION_METHODS:
                raise ConfigurationError(f"Unknown action method: {action.get('method')}")
            timeline.setdefault(int(action["at_block"]), []).append((order["action"], "action", action, {}))
        for assertion in self.scenario.get("assertions", []):
            if assertion.get("type") not in ASSERTION_TYPES:
                raise ConfigurationError(f"Unknown assertion type: {assertion.get('type')}")
            timeline.setdefault(int(assertion["at_block"]), []).append(
                (order["assertion"], "assertion", assertion, {})
            )

        for entries in timeline.values():
            entries.sort(key=lambda item: item[0])
        return timeline

    def run(self, on_step: Optional[Callable[[str], None]] = None) -> SimulationResult:
        """
        Replay the scenario.

        Args:
            on_step: Called with each log line as it is produced

        Returns:
            SimulationResult with the final auction and any failed expectations
        """
        result = self._deploy()

        def record(line: str) -> None:
            result.log.append(line)
            if on_step is not None:
                on_step(line)

        timeline = self._collect()
        for block in sorted(timeline):
            for _, kind, entry, bidder in timeline[block]:
                if kind == "bid":
                    self._run_bid(result, block, entry, bidder, record)
                elif kind == "action":
                    self._run_guarded_action(result, block, entry, record)
                else:
                    self._run_assertion(result, block, entry, record)

        logger.info(f"Scenario {result.name}: {len(result.failures)} failure(s)")
        return result

    def _run_bid(self, result, block, entry, bidder, record) -> None:
        auction = result.auction
        owner = bidder["address"].lower()
        expected = entry.get("expect_revert")
        prev = entry.get("prev_tick_price")
        try:
            bid = auction.submit_bid(
                max_price=self._price(auction, entry["price"], entry.get("price_scale", Fraction(1))),
                exact_in=entry.get("side", "input") == "input",
                amount=int(entry["amount"]),
                owner=owner,
                block=block,
                prev_tick_price=int(prev) if prev is not None else None,
                hook_data=bytes.fromhex(entry.get("hook_data", "").removeprefix("0x")),
            )
        except AuctionError as e:
            if expected and _error_matches(e, expected):
                record(f"[{block}] bid {entry['label']} reverted as expected: {type(e).__name__}")
                return
            result.failures.append(f"[{block}] bid {entry['label']} failed: {type(e).__name__}: {e}")
            record(result.failures[-1])
            return

        result.bids[entry["label"]] = bid
        if expected:
            result.failures.append(f"[{block}] bid {entry['label']} expected {expected}, succeeded")
            record(result.failures[-1])
            return
        record(
            f"[{block}] bid {entry['label']} #{bid.bid_id}: {bid.amount} @ {bid.max_price} "
            f"(clearing {auction.clearing_price})"
        )

    def _bid_ref(self, result: SimulationResult, entry: Dict[str, Any]) -> Bid:
        ref = entry.get("bid")
        if isinstance(ref, int):
            return result.auction.get_bid(ref)
        if ref not in result.bids:
            raise ConfigurationError(f"Unknown bid reference: {ref}")
        return result.bids[ref]

    def _run_guarded_action(self, result, block, entry, record) -> None:
        """Run an action, checking it against `expect_revert`."""
        method = entry["method"]
        expected = entry.get("expect_revert")
        try:
            self._run_action(result, block, entry, record)
        except ConfigurationError:
            raise
        except AuctionError as e:
            if expected and _error_matches(e, expected):
                record(f"[{block}] {method} reverted as expected: {type(e).__name__}")
                return
            result.failures.append(f"[{block}] {method} failed: {type(e).__name__}: {e}")
            record(result.failures[-1])
            return

        if expected:
            result.failures.append(f"[{block}] {method} expected {expected}, succeeded")
            record(result.failures[-1])

    def _run_action(self, result, block, entry, record) -> None:
        auction = result.auction
        method = entry["method"]

        if method == "checkpoint":
            checkpoint = auction.recompute(block)
            record(
                f"[{block}] checkpoint: price={checkpoint.clearing_price} "
                f"cleared={checkpoint.total_cleared} raised={checkpoint.currency_raised}"
            )
        elif method == "exit":
            bid = auction.exit_bid(
                self._bid_ref(result, entry).bid_id,
                block,
                last_fully_filled_block=entry.get("last_fully_filled_block"),
                outbid_block=entry.get("outbid_block"),
            )
            record(f"[{block}] exit #{bid.bid_id}: filled={bid.tokens_filled} refunded={bid.refunded}")
        elif method == "exit_all":
            for bid in list(auction.bids.values()):
                if not bid.is_exited:
                    auction.exit_bid(bid.bid_id, block)
                    record(f"[{block}] exit #{bid.bid_id}: filled={bid.tokens_filled} refunded={bid.refunded}")
        elif method == "claim":
            bid = self._bid_ref(result, entry)
            amount = auction.claim(bid.bid_id, block)
            record(f"[{block}] claim #{bid.bid_id}: {amount} units")
        elif method == "claim_all":
            for owner in sorted({bid.owner for bid in auction.bids.values()}):
                ids = [bid.bid_id for bid in auction.bids_of(owner) if bid.status == BidStatus.EXITED]
                if ids:
                    amount = auction.claim_batch(owner, ids, block)
                    record(f"[{block}] claim {owner[:10]}: {amount} units over {len(ids)} bid(s)")
        elif method == "sweep_currency":
            amount = auction.sweep_currency(block)
            record(f"[{block}] sweep currency: {amount}")
        elif method == "sweep_unsold_units":
            amount = auction.sweep_unsold_units(block)
            record(f"[{block}] sweep unsold units: {amount}")
        elif method == "transfer":
            asset = self._asset(result, entry.get("token", "currency"))
            sender = self._address(entry["from"])
            recipient = self._address(entry["to"])
            asset.move(sender, recipient, int(entry["amount"]))
            record(f"[{block}] transfer {entry['amount']} {asset.symbol}: {sender[:10]} -> {recipient[:10]}")

    # =========================================================================
    # Assertions
    # =========================================================================

    def _run_assertion(self, result, block, entry, record) -> None:
        auction = result.auction
        kind = entry["type"]
        # (name, actual, expected, tolerance)
        checks: List[Tuple[str, Any, Any, int]] = []

        if kind == "balance":
            asset = self._asset(result, entry.get("token", "currency"))
            address = self._address(entry["address"])
            expected, tolerance = expected_amount(entry["expected"], entry.get("variance"))
            checks.append((f"balance {address[:10]} {asset.symbol}", asset.balance_of(address), expected, tolerance))
        elif kind == "total_supply":
            asset = self._asset(result, entry.get("token", "units"))
            expected, tolerance = expected_amount(entry["expected"], entry.get("variance"))
            checks.append((f"total supply {asset.symbol}", asset.total_supply, expected, tolerance))
        elif kind == "event":
            checks.append(self._event_check(auction, block, entry))
        else:
            head = auction.recompute(block)
            if "is_graduated" in entry:
                checks.append(("is_graduated", auction.is_graduated(), bool(entry["is_graduated"]), 0))
            for name in ("clearing_price", "currency_raised", "total_cleared"):
                if name in entry:
                    expected, tolerance = expected_amount(entry[name])
                    checks.append((name, getattr(head, name), expected, tolerance))
            for name, value in entry.get("latest_checkpoint", {}).items():
                if name.startswith("_") or not hasattr(head, name):
                    raise ConfigurationError(f"Unknown checkpoint field: {name}")
                expected, tolerance = expected_amount(value)
                checks.append((f"latest_checkpoint.{name}", getattr(head, name), expected, tolerance))

        for name, actual, expected, tolerance in checks:
            if isinstance(expected, bool) or tolerance == 0:
                passed = actual == expected
                wanted = f"{expected}"
            else:
                passed = abs(actual - expected) <= tolerance
                wanted = f"{expected} ± {tolerance}"

            if passed:
                record(f"[{block}] {name} == {wanted}")
            else:
                result.failures.append(f"[{block}] {name}: expected {wanted}, got {actual}")
                record(result.failures[-1])

    def _event_check(self, auction: Auction, block: int, entry: Dict[str, Any]) -> Tuple[str, bool, bool, int]:
        name = entry["event_name"]
        if name not in EVENT_NAMES:
            raise ConfigurationError(f"Unknown event name: {name}")
        expected_args = entry.get("expected_args", {})
        at = min(block, auction.end_block)

        found = any(
            all(self._same(event.data.get(key), value) for key, value in expected_args.items())
            for event in auction.events.of_type(EVENT_NAMES[name])
            if event.block == at
        )
        return f"event {name} {expected_args or ''}".rstrip(), found, True, 0

    def _same(self, actual: Any, expected: Any) -> bool:
        if isinstance(expected, str):
            return str(actual).lower() == self._address(expected)
        return actual == expected


def _error_matches(error: Exception, name: str) -> bool:
    return any(cls.__name__ == name for cls in type(error).__mro__)
