"""
Core typed records shared by the beacon client, scanner, engine and chain
hosts.

Types provided:
  • Block              — minimal block header (number, timestamp, hash)
  • Log                — one event log as returned by eth_getLogs
  • Call               — one outgoing transaction the executor should submit
  • Cursor             — persisted scan progress
  • Beacon             — one verified drand beacon
  • RandomnessRequest  — a decoded RandomnessRequested event
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from . import abi
from .constants import MAX_NUM_WORDS, MAX_UINT32, REQUEST_PAYLOAD_TYPES
from .errors import AbiError
from .utils.bytes import to_hex

_HASH32 = 32


def _require_nonneg(name: str, v: int) -> None:
    if v < 0:
        raise ValueError(f"{name} must be non-negative (got {v})")


# ---- Chain records -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Block:
    number: int
    timestamp: int
    hash: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Log:
    """
    An event log.

    Fields:
      address       — emitting contract (lowercase hex)
      topics        — topic0..3 as 0x-hex strings
      data          — non-indexed payload
      block_number  — block holding the log
      log_index     — position of the log within its block
    """

    address: str
    topics: Tuple[str, ...]
    data: bytes
    block_number: int
    log_index: int = 0
    transaction_hash: Optional[str] = None

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(frozen=True, slots=True)
class Call:
    """One transaction for the external executor: ``{to, data}``."""

    to: str
    data: bytes

    def to_dict(self) -> Dict[str, str]:
        return {"to": self.to, "data": to_hex(self.data)}


@dataclass(frozen=True, slots=True)
class Cursor:
    """Last block whose logs were completely scanned."""

    last_processed_block: int

    def __post_init__(self) -> None:
        _require_nonneg("last_processed_block", self.last_processed_block)

    def advanced_to(self, block: int) -> "Cursor":
        # never moves backwards
        return Cursor(max(self.last_processed_block, block))


# ---- Beacon ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Beacon:
    """
    A drand beacon that passed signature verification.

    Fields:
      round              — drand round number (>= 1)
      randomness         — sha256(signature), 32 bytes
      signature          — BLS signature bytes (48 on G1, 96 on G2)
      previous_signature — previous round's signature (chained scheme only)
    """

    round: int
    randomness: bytes
    signature: bytes
    previous_signature: Optional[bytes] = None

    def __post_init__(self) -> None:
        if not isinstance(self.round, int) or self.round < 1:
            raise ValueError(f"round must be a positive int (got {self.round!r})")
        if len(self.randomness) != _HASH32:
            raise ValueError(f"randomness must be exactly {_HASH32} bytes (got {len(self.randomness)})")

    @property
    def randomness_int(self) -> int:
        """Randomness as a 256-bit big-endian integer (the on-chain uint256)."""
        return int.from_bytes(self.randomness, "big")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "round": self.round,
            "randomness": self.randomness.hex(),
            "signature": self.signature.hex(),
        }
        if self.previous_signature is not None:
            d["previous_signature"] = self.previous_signature.hex()
        return d


# ---- Registry request --------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RandomnessRequest:
    """
    A request as announced by the registry's ``RandomnessRequested`` event.

    ``consumer`` is the *recorded* recipient from the event payload, which may
    differ from ``sender`` (the contract that asked) and from the log's
    emitting address (the registry itself).
    """

    request_id: int
    consumer: str
    num_words: int
    confirmations: int
    sender: str
    payload: bytes = field(repr=False)
    block_number: int = 0
    log_index: int = 0
    block_time: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: bytes, *, block_number: int = 0, log_index: int = 0) -> "RandomnessRequest":
        request_id, consumer, num_words, confirmations, sender = abi.decode(REQUEST_PAYLOAD_TYPES, payload)
        if request_id > MAX_UINT32:
            raise AbiError(f"request_id does not fit in uint32: {request_id}")
        if num_words == 0 or num_words > MAX_NUM_WORDS:
            raise AbiError(f"num_words out of range: {num_words}")
        return cls(
            request_id=request_id,
            consumer=consumer,
            num_words=num_words,
            confirmations=confirmations,
            sender=sender,
            payload=bytes(payload),
            block_number=block_number,
            log_index=log_index,
        )

    @classmethod
    def from_log(cls, log: Log) -> "RandomnessRequest":
        # RandomnessRequested(bytes data): the payload is itself ABI-wrapped as `bytes`
        (payload,) = abi.decode(["bytes"], log.data)
        return cls.from_payload(payload, block_number=log.block_number, log_index=log.log_index)

    def with_block_time(self, ts: int) -> "RandomnessRequest":
        return replace(self, block_time=ts)


__all__ = [
    "Block",
    "Log",
    "Call",
    "Cursor",
    "Beacon",
    "RandomnessRequest",
]
