"""
Tests for parameter parsing and the auction factory.

Tests cover:
1. Packed and list step formats
2. Parameter validation
3. Deterministic auction ids and duplicate detection
4. Supply custody on deployment
"""

import pytest

from cca.core.assets import InMemoryAsset
from cca.core.errors import (
    ConfigurationError,
    DuplicateAuction,
    InsufficientFunds,
    InvalidRateSum,
)
from cca.core.factory import AuctionFactory, AuctionParameters, parse_parameters
from cca.core.fixed_point import Q96


# =============================================================================
# Fixtures
# =============================================================================

CREATOR = "0x" + "cc" * 20
CUSTODIAN = "0x" + "ab" * 20


def make_params(**overrides):
    params = {
        "floor_price": Q96,
        "tick_spacing": Q96,
        "start_block": 0,
        "end_block": 100,
        "claim_block": 100,
        "steps": "0x0186a00000000064",
        "funds_recipient": "0x" + "F0" * 20,
    }
    params.update(overrides)
    return params


@pytest.fixture
def assets():
    units = InMemoryAsset("UNIT", CUSTODIAN)
    currency = InMemoryAsset("CUR", CUSTODIAN)
    units.mint(CREATOR, 10_000)
    return units, currency


# =============================================================================
# Parameter Tests
# =============================================================================


class TestAuctionParameters:
    """Tests for the parameter model."""

    def test_packed_steps(self):
        params = parse_parameters(make_params())
        assert params.step_pairs == [(100_000, 100)]

    def test_list_steps(self):
        params = parse_parameters(make_params(steps=[{"mps": 100_000, "block_delta": 100}]))
        assert params.packed_steps == "0x0186a00000000064"

    def test_bytes_steps(self):
        params = parse_parameters(make_params(steps=bytes.fromhex("0186a00000000064")))
        assert params.step_pairs == [(100_000, 100)]

    def test_recipient_lowercased(self):
        params = parse_parameters(make_params())
        assert params.funds_recipient == "0x" + "f0" * 20

    def test_passthrough(self):
        params = AuctionParameters(**make_params())
        assert parse_parameters(params) is params

    def test_to_config(self):
        config = parse_parameters(make_params(graduation_threshold_mps=5_000_000)).to_config(1000)
        assert config.total_supply == 1000
        assert config.steps == [(100_000, 100)]
        assert config.graduation_threshold_mps == 5_000_000

    @pytest.mark.parametrize(
        "overrides",
        [
            {"floor_price": 0},
            {"steps": "0x0186a0"},
            {"steps": "0xnothex!"},
            {"steps": [{"mps": 2**24, "block_delta": 1}]},
            {"steps": [{"mps": 100_000, "block_delta": 0}]},
            {"graduation_threshold_mps": 10_000_001},
            {"units_recipient": "0x1234"},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            parse_parameters(make_params(**overrides))

    def test_missing_field(self):
        params = make_params()
        del params["end_block"]
        with pytest.raises(ConfigurationError):
            parse_parameters(params)


# =============================================================================
# Factory Tests
# =============================================================================


class TestAuctionFactory:
    """Tests for deployment."""

    def test_id_independent_of_step_format(self):
        packed = parse_parameters(make_params())
        listed = parse_parameters(make_params(steps=[{"mps": 100_000, "block_delta": 100}]))
        assert AuctionFactory.compute_auction_id("UNIT", 1000, packed) == (
            AuctionFactory.compute_auction_id("UNIT", 1000, listed)
        )

    def test_id_depends_on_inputs(self):
        params = parse_parameters(make_params())
        base = AuctionFactory.compute_auction_id("UNIT", 1000, params)
        assert base.startswith("0x") and len(base) == 66
        assert AuctionFactory.compute_auction_id("UNIT", 1001, params) != base
        assert AuctionFactory.compute_auction_id("OTHER", 1000, params) != base
        assert AuctionFactory.compute_auction_id("UNIT", 1000, params, salt=b"\x01") != base

    def test_create_moves_supply(self, assets):
        units, currency = assets
        factory = AuctionFactory()
        auction = factory.create_auction(CREATOR, units, currency, 1000, make_params())

        assert units.balance_of(CREATOR) == 9_000
        assert units.custody_balance == 1000
        assert factory.get(auction.auction_id) is auction
        assert len(factory) == 1

    def test_duplicate_rejected(self, assets):
        units, currency = assets
        factory = AuctionFactory()
        factory.create_auction(CREATOR, units, currency, 1000, make_params())
        with pytest.raises(DuplicateAuction):
            factory.create_auction(CREATOR, units, currency, 1000, make_params())
        assert units.balance_of(CREATOR) == 9_000

    def test_salt_allows_redeploy(self, assets):
        units, currency = assets
        factory = AuctionFactory()
        first = factory.create_auction(CREATOR, units, currency, 1000, make_params())
        second = factory.create_auction(CREATOR, units, currency, 1000, make_params(), salt=b"again")
        assert first.auction_id != second.auction_id
        assert len(factory) == 2

    def test_schedule_errors_surface(self, assets):
        units, currency = assets
        with pytest.raises(InvalidRateSum):
            AuctionFactory().create_auction(
                CREATOR, units, currency, 1000, make_params(steps=[{"mps": 1, "block_delta": 100}])
            )
        assert units.balance_of(CREATOR) == 10_000

    def test_creator_without_supply(self, assets):
        units, currency = assets
        factory = AuctionFactory()
        with pytest.raises(InsufficientFunds):
            factory.create_auction(CREATOR, units, currency, 20_000, make_params())
        assert len(factory) == 0

    def test_engine_config_shared(self, assets):
        units, currency = assets
        factory = AuctionFactory()
        auction = factory.create_auction(CREATOR, units, currency, 1000, make_params())
        assert auction.engine_config is factory.engine_config
