"""
Keccak-256 helpers (Ethereum-style padding, not NIST SHA3).

Backed by pycryptodome's ``Crypto.Hash.keccak``.
"""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

from .bytes import BytesLike, as_bytes, to_hex

__all__ = ["keccak256", "keccak256_hex", "selector", "event_topic"]


def keccak256(data: BytesLike) -> bytes:
    """Return the Keccak-256 digest of *data*."""
    h = _keccak.new(digest_bits=256)
    h.update(as_bytes(data))
    return h.digest()


def keccak256_hex(data: BytesLike, *, prefix: bool = True) -> str:
    return to_hex(keccak256(data), prefix="0x" if prefix else "")


def selector(signature: str) -> bytes:
    """4-byte function selector for a canonical signature like ``"f(uint256)"``."""
    return keccak256(signature.encode("ascii"))[:4]


def event_topic(signature: str) -> str:
    """topic0 (hex) for a canonical event signature."""
    return keccak256_hex(signature.encode("ascii"))
