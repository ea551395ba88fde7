"""
vrf_adapter.utils.bytes
=======================

Small utilities for working with hex/bytes plus strict **length guards** and
EVM address normalization.

Highlights
----------
- :func:`to_hex` / :func:`from_hex` with strict validation.
- :func:`as_bytes` to normalize bytes-like values.
- :func:`ensure_len` length guard.
- :func:`normalize_address` / :func:`is_address` for 20-byte account ids.
- :func:`hex_to_int` for JSON-RPC quantities (``"0x1b4"``).
"""

from __future__ import annotations

import re
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

__all__ = [
    "BytesLike",
    "to_hex",
    "from_hex",
    "is_hex",
    "as_bytes",
    "ensure_len",
    "hex_to_int",
    "int_to_hex",
    "is_address",
    "normalize_address",
    "ZERO_ADDRESS",
]

ZERO_ADDRESS = "0x" + "00" * 20

# -----------------
# Hex <-> Bytes I/O
# -----------------

_HEX_RE = re.compile(r"^(?:0x)?[0-9a-fA-F]*$")
_ADDR_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_hex(s: str) -> bool:
    """
    Return True if *s* is a valid hex string with an optional ``0x`` prefix
    and an even number of nibbles.
    """
    if not isinstance(s, str):
        return False
    if not _HEX_RE.match(s):
        return False
    body = s[2:] if s.startswith(("0x", "0X")) else s
    return len(body) % 2 == 0


def from_hex(s: str) -> bytes:
    """
    Convert a hex string (with optional ``0x``) to bytes.

    Strict rules:
    - No whitespace.
    - Only 0-9a-fA-F characters (plus optional prefix).
    - Even-length nibble count.
    """
    if not isinstance(s, str):
        raise TypeError("from_hex expects a str")
    if not _HEX_RE.match(s):
        raise ValueError("invalid hex string (characters or whitespace)")
    body = s[2:] if s.startswith(("0x", "0X")) else s
    if len(body) % 2 != 0:
        raise ValueError("hex string must have an even number of nibbles")
    return bytes.fromhex(body)


def to_hex(b: BytesLike, *, prefix: str = "0x") -> str:
    """Encode bytes as lowercase hex. By default returns with ``0x`` prefix."""
    return (prefix or "") + as_bytes(b).hex()


def as_bytes(x: BytesLike) -> bytes:
    """Normalize bytes-like to immutable :class:`bytes`."""
    if isinstance(x, bytes):
        return x
    if isinstance(x, (bytearray, memoryview)):
        return bytes(x)
    raise TypeError(f"expected bytes-like, got {type(x)!r}")


def ensure_len(b: BytesLike, expected: int, *, name: str = "value") -> bytes:
    """Ensure ``len(b) == expected``. Returns bytes on success, raises ValueError otherwise."""
    bb = as_bytes(b)
    if len(bb) != expected:
        raise ValueError(f"{name} must be {expected} bytes, got {len(bb)}")
    return bb


# ------------------
# JSON-RPC quantities
# ------------------


def hex_to_int(q: Union[str, int]) -> int:
    """Decode a JSON-RPC quantity. Plain ints pass through unchanged."""
    if isinstance(q, bool):
        raise TypeError("bool is not a quantity")
    if isinstance(q, int):
        return q
    if not isinstance(q, str) or not q.startswith(("0x", "0X")):
        raise ValueError(f"invalid quantity: {q!r}")
    body = q[2:]
    if not body:
        raise ValueError("empty quantity")
    return int(body, 16)


def int_to_hex(n: int) -> str:
    if n < 0:
        raise ValueError("quantity must be non-negative")
    return hex(n)


# ---------
# Addresses
# ---------


def is_address(s: object) -> bool:
    return isinstance(s, str) and bool(_ADDR_RE.match(s))


def normalize_address(addr: Union[str, BytesLike]) -> str:
    """
    Return the canonical lowercase ``0x``-prefixed form of a 20-byte address.

    Accepts hex strings (any case, checksum is not enforced) or raw bytes.
    """
    if isinstance(addr, (bytes, bytearray, memoryview)):
        return to_hex(ensure_len(addr, 20, name="address"))
    if not isinstance(addr, str):
        raise TypeError(f"address must be str or bytes, got {type(addr)!r}")
    s = addr.strip()
    if not s.startswith(("0x", "0X")):
        s = "0x" + s
    s = "0x" + s[2:]
    if not _ADDR_RE.match(s):
        raise ValueError(f"invalid address: {addr!r}")
    return s.lower()
