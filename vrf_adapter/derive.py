"""
Seed and word derivation.

One beacon value serves many requests, and one request may ask for many
words, so expansion is two-level:

    seed    = keccak256(abi.encode(uint256 randomness, uint32 requestId))
    word[i] = keccak256(abi.encode(bytes32 seed, uint32 i))     i in [0, numWords)

The encodings are exactly what the Solidity side computes with ``abi.encode``
(each value in its own 32-byte big-endian slot), so consumers can re-derive
and compare the delivered words byte-for-byte.
"""

from __future__ import annotations

from typing import List, Union

from . import abi
from .constants import MAX_NUM_WORDS, MAX_UINT32, WORD_BYTES
from .types import Beacon
from .utils.hash import keccak256

__all__ = ["derive_seed", "derive_word", "derive_words", "words_for_beacon"]

RandomnessLike = Union[bytes, int]


def _randomness_int(randomness: RandomnessLike) -> int:
    if isinstance(randomness, (bytes, bytearray)):
        if len(randomness) != WORD_BYTES:
            raise ValueError(f"randomness must be {WORD_BYTES} bytes (got {len(randomness)})")
        return int.from_bytes(randomness, "big")
    if isinstance(randomness, bool) or not isinstance(randomness, int):
        raise TypeError("randomness must be bytes or int")
    if randomness < 0 or randomness >> 256:
        raise ValueError("randomness must fit in 256 bits")
    return randomness


def _check_u32(name: str, v: int) -> None:
    if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v <= MAX_UINT32:
        raise ValueError(f"{name} must be a uint32 (got {v!r})")


def derive_seed(randomness: RandomnessLike, request_id: int) -> bytes:
    """Per-request seed; pure function of (randomness, request_id)."""
    _check_u32("request_id", request_id)
    return keccak256(abi.encode(["uint256", "uint32"], [_randomness_int(randomness), request_id]))


def derive_word(seed: bytes, index: int) -> bytes:
    _check_u32("index", index)
    return keccak256(abi.encode(["bytes32", "uint32"], [bytes(seed), index]))


def derive_words(randomness: RandomnessLike, request_id: int, num_words: int) -> List[bytes]:
    """Return ``num_words`` 32-byte words for a request."""
    if not 1 <= num_words <= MAX_NUM_WORDS:
        raise ValueError(f"num_words must be in [1, {MAX_NUM_WORDS}] (got {num_words})")
    seed = derive_seed(randomness, request_id)
    return [derive_word(seed, i) for i in range(num_words)]


def words_for_beacon(beacon: Beacon, request_id: int, num_words: int) -> List[int]:
    """Words as uint256 integers, ready for ``fulfillRandomness(uint256[],bytes)``."""
    return [int.from_bytes(w, "big") for w in derive_words(beacon.randomness, request_id, num_words)]
