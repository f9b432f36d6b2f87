"""
Input Validation - Boundary checks for everything entering the engine.

Provides validation for external inputs to prevent:
- Integer overflows in fixed-point math
- Malformed addresses
- Invalid hex payloads (packed steps, hook data)
"""

import re
from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_ADDRESS_SIZE = 20
MAX_HOOK_DATA_SIZE = 4096  # 4KB

# Field bounds
MIN_AMOUNT = 0
MAX_AMOUNT = 2**128 - 1
MIN_BLOCK = 0
MAX_BLOCK = 2**64 - 1

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a currency or unit amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_block_number(block: Any, name: str = "block_number") -> Tuple[bool, str]:
    """Validate a block number."""
    return validate_integer(block, name, MIN_BLOCK, MAX_BLOCK)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    if not ADDRESS_PATTERN.match(address):
        return False, f"{name} must be a 0x-prefixed {MAX_ADDRESS_SIZE}-byte hex address"
    return True, ""


def validate_bytes(
    data: Any,
    name: str,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_hex_string(value: Any, name: str, multiple_of: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        multiple_of: Decoded byte length must be a multiple of this

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    hex_str = value[2:] if value.startswith("0x") else value

    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if multiple_of is not None and (len(hex_str) // 2) % multiple_of != 0:
        return False, f"{name} length must be a multiple of {multiple_of} bytes"

    return True, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_amount",
    "validate_block_number",
    "validate_address",
    "validate_bytes",
    "validate_hex_string",
    "MAX_AMOUNT",
    "MAX_BLOCK",
    "MAX_HOOK_DATA_SIZE",
]
