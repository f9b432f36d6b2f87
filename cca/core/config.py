"""
Configuration for auctions and for the engine itself.

AuctionConfig holds the immutable parameters of one auction. EngineConfig
holds operational settings (logging, traversal limits) and can be loaded
from a JSON or TOML file with environment overrides:

- CCA_LOG_LEVEL
- CCA_LOG_DIR
- CCA_MAX_CHECKPOINT_TRAVERSAL

A `.env` file in the working directory is read first when present.
"""

import json
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from cca.core.errors import (
    InvalidClaimBlock,
    InvalidEndBlock,
    InvalidFloorPrice,
    InvalidGraduationThreshold,
    InvalidRecipient,
    InvalidTickSpacing,
    InvalidTotalSupply,
)
from cca.core.fixed_point import MAX_BID_PRICE, MPS
from cca.utils.validation import validate_address, validate_amount, validate_block_number


# =============================================================================
# Auction Configuration
# =============================================================================


@dataclass
class AuctionConfig:
    """Immutable parameters of a single auction."""

    # Supply and pricing
    total_supply: int
    floor_price: int                      # Q96
    tick_spacing: int                     # Q96 granularity of bid prices

    # Timing (block numbers)
    start_block: int
    end_block: int
    claim_block: int

    # Issuance: (mps per block, block delta) pairs covering [start, end)
    steps: List[Tuple[int, int]] = field(default_factory=list)

    # Graduation
    graduation_threshold_mps: int = 0     # fraction of supply that must sell
    required_currency_raised: int = 0     # currency that must be raised

    # Recipients
    units_recipient: str = "0x" + "00" * 20
    funds_recipient: str = "0x" + "00" * 20

    def validate(self) -> None:
        """
        Check the parameters, raising the first configuration error found.
        """
        valid, err = validate_amount(self.total_supply, "total_supply")
        if not valid or self.total_supply == 0:
            raise InvalidTotalSupply(err or "Total supply must be positive")

        if not isinstance(self.tick_spacing, int) or self.tick_spacing <= 0:
            raise InvalidTickSpacing(f"Tick spacing must be positive, got {self.tick_spacing}")

        if not isinstance(self.floor_price, int) or self.floor_price <= 0:
            raise InvalidFloorPrice(f"Floor price must be positive, got {self.floor_price}")
        if self.floor_price % self.tick_spacing != 0:
            raise InvalidFloorPrice(
                f"Floor price {self.floor_price} is not a multiple of tick spacing {self.tick_spacing}"
            )
        if self.floor_price > MAX_BID_PRICE:
            raise InvalidFloorPrice(f"Floor price {self.floor_price} above maximum bid price")

        for name in ("start_block", "end_block", "claim_block"):
            valid, err = validate_block_number(getattr(self, name), name)
            if not valid:
                raise InvalidEndBlock(err)
        if self.end_block <= self.start_block:
            raise InvalidEndBlock(f"End block {self.end_block} must be after start block {self.start_block}")
        if self.claim_block < self.end_block:
            raise InvalidClaimBlock(f"Claim block {self.claim_block} precedes end block {self.end_block}")

        if not 0 <= self.graduation_threshold_mps <= MPS:
            raise InvalidGraduationThreshold(
                f"Graduation threshold {self.graduation_threshold_mps} outside [0, {MPS}]"
            )
        if self.required_currency_raised < 0:
            raise InvalidGraduationThreshold("Required currency raised cannot be negative")

        for name in ("units_recipient", "funds_recipient"):
            valid, err = validate_address(getattr(self, name), name)
            if not valid:
                raise InvalidRecipient(err)


# =============================================================================
# Engine Configuration
# =============================================================================


@dataclass
class EngineConfig:
    """Operational settings shared by every auction in a process."""

    # Hint-free exit search
    max_checkpoint_traversal: int = 10_000

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = False


ENV_OVERRIDES = {
    "CCA_LOG_LEVEL": ("log_level", str),
    "CCA_LOG_DIR": ("log_dir", Path),
    "CCA_MAX_CHECKPOINT_TRAVERSAL": ("max_checkpoint_traversal", int),
}


def _read_config_file(path: Path) -> dict:
    if path.suffix == ".toml":
        with path.open("rb") as fh:
            data = tomllib.load(fh)
        return data.get("engine", data)
    return json.loads(path.read_text())


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> EngineConfig:
    """
    Load engine configuration from file and environment.

    Args:
        config_path: Optional JSON or TOML file ([engine] table for TOML)
        env_file: Optional dotenv file (defaults to ./.env when present)

    Returns:
        EngineConfig instance
    """
    load_dotenv(env_file)

    values = {}
    if config_path:
        known = {f.name for f in fields(EngineConfig)}
        for key, value in _read_config_file(Path(config_path)).items():
            if key not in known:
                raise ValueError(f"Unknown engine config key: {key}")
            values[key] = value

    for env_name, (key, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is not None:
            values[key] = cast(raw)

    config = EngineConfig(**values)
    config.log_dir = Path(config.log_dir)
    if config.max_checkpoint_traversal <= 0:
        raise ValueError("max_checkpoint_traversal must be positive")
    return config
