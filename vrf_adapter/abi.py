"""
vrf_adapter.abi
===============

Minimal Ethereum contract ABI codec covering the types the registry speaks:

- ``uint8`` … ``uint256``   (big-endian, left-padded 32-byte slot)
- ``address``              (20 bytes, left-padded)
- ``bool``
- ``bytes1`` … ``bytes32``  (right-padded)
- ``bytes`` / ``string``    (dynamic)
- ``T[]``                  (dynamic arrays of any of the above)

Encoding follows the Solidity head/tail layout so that
payloads are byte-for-byte identical to ``abi.encode`` on-chain. Values out
of range for their declared type raise :class:`~vrf_adapter.errors.AbiError`
instead of being silently truncated.

Usage
-----
    from vrf_adapter import abi

    data = abi.encode(["uint256", "uint32"], [randomness, request_id])
    call = abi.encode_call("fulfillRandomness(uint256[],bytes)", [words, payload])
    (words, payload) = abi.decode(["uint256[]", "bytes"], call[4:])
"""

from __future__ import annotations

import re
from typing import Any, List, Sequence, Tuple

from .errors import AbiError
from .utils.bytes import normalize_address
from .utils.hash import selector

__all__ = [
    "encode",
    "decode",
    "encode_call",
    "decode_call",
    "parse_signature",
]

_SLOT = 32
_UINT_RE = re.compile(r"^uint(\d{0,3})$")
_BYTESN_RE = re.compile(r"^bytes(\d{1,2})$")
_SIG_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")


def _is_dynamic(t: str) -> bool:
    return t in ("bytes", "string") or t.endswith("[]")


def _uint_bits(t: str) -> int:
    m = _UINT_RE.match(t)
    if not m:
        raise AbiError(f"unsupported type: {t}")
    bits = int(m.group(1) or 256)
    if bits <= 0 or bits > 256 or bits % 8:
        raise AbiError(f"invalid uint width: {t}")
    return bits


def _pad_right(b: bytes) -> bytes:
    rem = len(b) % _SLOT
    return b if rem == 0 else b + b"\x00" * (_SLOT - rem)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _encode_static(t: str, v: Any) -> bytes:
    if t == "address":
        try:
            addr = normalize_address(v)
        except (TypeError, ValueError) as e:
            raise AbiError(str(e)) from e
        return b"\x00" * 12 + bytes.fromhex(addr[2:])
    if t == "bool":
        if not isinstance(v, bool):
            raise AbiError(f"bool expected, got {type(v).__name__}")
        return int(v).to_bytes(_SLOT, "big")
    m = _BYTESN_RE.match(t)
    if m:
        n = int(m.group(1))
        if not 1 <= n <= 32:
            raise AbiError(f"invalid fixed bytes width: {t}")
        if not isinstance(v, (bytes, bytearray)) or len(v) != n:
            raise AbiError(f"{t} expects exactly {n} bytes")
        return bytes(v) + b"\x00" * (_SLOT - n)
    bits = _uint_bits(t)
    if isinstance(v, bool) or not isinstance(v, int):
        raise AbiError(f"{t} expects int, got {type(v).__name__}")
    if v < 0 or v >> bits:
        raise AbiError(f"value out of range for {t}: {v}")
    return v.to_bytes(_SLOT, "big")


def _encode_dynamic(t: str, v: Any) -> bytes:
    if t == "bytes":
        if not isinstance(v, (bytes, bytearray)):
            raise AbiError("bytes expects a bytes-like value")
        return len(v).to_bytes(_SLOT, "big") + _pad_right(bytes(v))
    if t == "string":
        if not isinstance(v, str):
            raise AbiError("string expects str")
        raw = v.encode("utf-8")
        return len(raw).to_bytes(_SLOT, "big") + _pad_right(raw)
    inner = t[:-2]
    if not isinstance(v, (list, tuple)):
        raise AbiError(f"{t} expects a sequence")
    return len(v).to_bytes(_SLOT, "big") + encode([inner] * len(v), list(v))


def encode(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """ABI-encode *values* as a tuple of *types* (equivalent to ``abi.encode``)."""
    if len(types) != len(values):
        raise AbiError(f"expected {len(types)} values, got {len(values)}")
    head_size = _SLOT * len(types)
    heads: List[bytes] = []
    tails: List[bytes] = []
    tail_len = 0
    for t, v in zip(types, values):
        if _is_dynamic(t):
            heads.append((head_size + tail_len).to_bytes(_SLOT, "big"))
            enc = _encode_dynamic(t, v)
            tails.append(enc)
            tail_len += len(enc)
        else:
            heads.append(_encode_static(t, v))
    return b"".join(heads) + b"".join(tails)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _slot(data: bytes, pos: int) -> bytes:
    if pos < 0 or pos + _SLOT > len(data):
        raise AbiError(f"truncated data: need slot at {pos}, have {len(data)} bytes")
    return data[pos : pos + _SLOT]


def _decode_static(t: str, word: bytes) -> Any:
    if t == "address":
        if any(word[:12]):
            raise AbiError("dirty high bytes in address slot")
        return "0x" + word[12:].hex()
    if t == "bool":
        n = int.from_bytes(word, "big")
        if n not in (0, 1):
            raise AbiError(f"invalid bool value: {n}")
        return bool(n)
    m = _BYTESN_RE.match(t)
    if m:
        return word[: int(m.group(1))]
    bits = _uint_bits(t)
    n = int.from_bytes(word, "big")
    if n >> bits:
        raise AbiError(f"value out of range for {t}")
    return n


def _decode_dynamic(t: str, data: bytes, offset: int) -> Any:
    length = int.from_bytes(_slot(data, offset), "big")
    start = offset + _SLOT
    if t in ("bytes", "string"):
        end = start + length
        if end > len(data):
            raise AbiError("truncated dynamic bytes")
        raw = data[start:end]
        if t == "string":
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise AbiError(f"invalid utf-8 string: {e}") from e
        return raw
    inner = t[:-2]
    if length > len(data):
        raise AbiError("array length exceeds payload size")
    return list(decode([inner] * length, data[start:]))


def decode(types: Sequence[str], data: bytes) -> Tuple[Any, ...]:
    """Decode an ABI-encoded tuple of *types* from *data*."""
    data = bytes(data)
    out: List[Any] = []
    for i, t in enumerate(types):
        word = _slot(data, i * _SLOT)
        if _is_dynamic(t):
            offset = int.from_bytes(word, "big")
            if offset > len(data):
                raise AbiError(f"offset out of bounds for {t}: {offset}")
            out.append(_decode_dynamic(t, data, offset))
        else:
            out.append(_decode_static(t, word))
    return tuple(out)


# ---------------------------------------------------------------------------
# Function calls
# ---------------------------------------------------------------------------


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    """Split ``"name(t1,t2)"`` into ``("name", ["t1", "t2"])``. Tuples are not supported."""
    m = _SIG_RE.match(signature.replace(" ", ""))
    if not m:
        raise AbiError(f"invalid function signature: {signature!r}")
    args = m.group(2)
    return m.group(1), [a for a in args.split(",") if a] if args else []


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """Selector-prefixed calldata for *signature* applied to *args*."""
    _, types = parse_signature(signature)
    return selector(signature) + encode(types, args)


def decode_call(signature: str, calldata: bytes) -> Tuple[Any, ...]:
    """Inverse of :func:`encode_call`; verifies the selector."""
    if bytes(calldata[:4]) != selector(signature):
        raise AbiError(f"selector mismatch for {signature}")
    _, types = parse_signature(signature)
    return decode(types, calldata[4:])
