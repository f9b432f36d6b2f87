"""
Auction Factory - Validates parameters and deploys auctions.

Parameters arrive as a plain mapping (JSON scenario files, the CLI) or as an
`AuctionParameters` model. Steps may be given either as packed hex (8 bytes
per step) or as a list of {mps, block_delta} objects.

Each auction gets a deterministic id: keccak256 over the unit symbol, the
supply, the canonical parameters and a caller-chosen salt. Deploying the
same tuple twice is rejected.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from cca.core.assets import Asset
from cca.core.auction.auction import Auction
from cca.core.auction.steps import decode_steps, encode_steps
from cca.core.config import AuctionConfig, EngineConfig
from cca.core.errors import ConfigurationError, DuplicateAuction
from cca.core.events import EventBus
from cca.core.fixed_point import MPS
from cca.core.hooks import ValidationHook
from cca.utils.hashing import keccak256
from cca.utils.logger import get_logger
from cca.utils.validation import validate_address, validate_hex_string

logger = get_logger("factory")

ZERO_ADDRESS = "0x" + "00" * 20


# =============================================================================
# Parameter Models
# =============================================================================


class StepParameters(BaseModel):
    """One issuance step: `mps` per block for `block_delta` blocks."""
    mps: int = Field(..., ge=0, lt=2**24, description="Supply fraction released per block")
    block_delta: int = Field(..., gt=0, lt=2**40, description="Number of blocks")


class AuctionParameters(BaseModel):
    """Everything needed to deploy an auction apart from the supply."""
    floor_price: int = Field(..., gt=0, description="Q96 floor price")
    tick_spacing: int = Field(..., gt=0, description="Q96 tick spacing")
    start_block: int = Field(..., ge=0)
    end_block: int = Field(..., gt=0)
    claim_block: int = Field(..., gt=0)
    steps: List[StepParameters] = Field(..., description="Packed hex or list of steps")
    graduation_threshold_mps: int = Field(0, ge=0, le=MPS)
    required_currency_raised: int = Field(0, ge=0)
    units_recipient: str = ZERO_ADDRESS
    funds_recipient: str = ZERO_ADDRESS

    @field_validator("steps", mode="before")
    @classmethod
    def unpack_steps(cls, v):
        if isinstance(v, bytes):
            v = v.hex()
        if isinstance(v, str):
            valid, err = validate_hex_string(v, "steps", multiple_of=8)
            if not valid:
                raise ValueError(err)
            return [{"mps": mps, "block_delta": delta} for mps, delta in decode_steps(v)]
        return v

    @field_validator("units_recipient", "funds_recipient")
    @classmethod
    def check_address(cls, v, info):
        valid, err = validate_address(v, info.field_name)
        if not valid:
            raise ValueError(err)
        return v.lower()

    @property
    def step_pairs(self) -> List[Tuple[int, int]]:
        return [(step.mps, step.block_delta) for step in self.steps]

    @property
    def packed_steps(self) -> str:
        return "0x" + encode_steps(self.step_pairs).hex()

    def to_config(self, total_supply: int) -> AuctionConfig:
        return AuctionConfig(
            total_supply=total_supply,
            floor_price=self.floor_price,
            tick_spacing=self.tick_spacing,
            start_block=self.start_block,
            end_block=self.end_block,
            claim_block=self.claim_block,
            steps=self.step_pairs,
            graduation_threshold_mps=self.graduation_threshold_mps,
            required_currency_raised=self.required_currency_raised,
            units_recipient=self.units_recipient,
            funds_recipient=self.funds_recipient,
        )

    def canonical(self) -> Dict[str, Any]:
        """Stable representation used for the auction id."""
        data = self.model_dump(exclude={"steps"})
        data["steps"] = self.packed_steps
        return data


def parse_parameters(params: Union[AuctionParameters, Mapping[str, Any]]) -> AuctionParameters:
    """
    Build AuctionParameters from a mapping.

    Raises:
        ConfigurationError: the mapping does not describe valid parameters
    """
    if isinstance(params, AuctionParameters):
        return params
    try:
        return AuctionParameters.model_validate(dict(params))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid auction parameters: {e}") from e


# =============================================================================
# Factory
# =============================================================================


class AuctionFactory:
    """
    Deploys auctions and keeps them by id.

    Attributes:
        auctions: Auction id -> Auction
        engine_config: Settings handed to every deployed auction
    """

    def __init__(self, engine_config: Optional[EngineConfig] = None):
        self.engine_config = engine_config if engine_config is not None else EngineConfig()
        self.auctions: Dict[str, Auction] = {}

    @staticmethod
    def compute_auction_id(
        units_symbol: str,
        total_supply: int,
        params: AuctionParameters,
        salt: bytes = b"",
    ) -> str:
        payload = json.dumps(
            {"units": units_symbol, "total_supply": total_supply, "params": params.canonical()},
            sort_keys=True,
        ).encode()
        return "0x" + keccak256(payload + salt).hex()

    def create_auction(
        self,
        creator: str,
        units: Asset,
        currency: Asset,
        total_supply: int,
        params: Union[AuctionParameters, Mapping[str, Any]],
        salt: bytes = b"",
        validation_hook: Optional[ValidationHook] = None,
        event_bus: Optional[EventBus] = None,
    ) -> Auction:
        """
        Validate parameters, deploy an auction and move the supply into custody.

        Args:
            creator: Account providing the units for sale
            units: Asset being sold
            currency: Asset bids are paid in
            total_supply: Units for sale
            params: Auction parameters
            salt: Distinguishes otherwise identical deployments
            validation_hook: Optional bid gate
            event_bus: Optional shared event bus

        Returns:
            The deployed Auction

        Raises:
            ConfigurationError: invalid parameters
            DuplicateAuction: same units, supply, parameters and salt
        """
        parsed = parse_parameters(params)
        auction_id = self.compute_auction_id(units.symbol, total_supply, parsed, salt)
        if auction_id in self.auctions:
            raise DuplicateAuction(f"Auction {auction_id[:18]} already exists")

        auction = Auction(
            parsed.to_config(total_supply),
            currency=currency,
            units=units,
            validation_hook=validation_hook,
            event_bus=event_bus,
            engine_config=self.engine_config,
            auction_id=auction_id,
        )
        units.collect(creator, total_supply)
        self.auctions[auction_id] = auction

        logger.info(f"Deployed auction {auction_id[:18]} selling {total_supply} {units.symbol}")
        return auction

    def get(self, auction_id: str) -> Optional[Auction]:
        return self.auctions.get(auction_id)

    def __len__(self) -> int:
        return len(self.auctions)
