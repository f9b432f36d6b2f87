"""
Hashing helpers.

Keccak-256 (Ethereum-style) is used for deterministic auction ids and the
addresses derived from them.
"""

from Crypto.Hash import keccak


def keccak256(data: bytes) -> bytes:
    """Compute Keccak-256 hash."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def to_address(digest: bytes) -> str:
    """Address made of the last 20 bytes of a digest, 0x-prefixed."""
    return "0x" + digest[-20:].hex()
