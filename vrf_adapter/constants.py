"""
VRF adapter constants.

This module centralizes:
- Scanner bounds (block range width, iteration budget, first-run lookback)
- The persisted cursor key
- Registry ABI signatures (functions and events)
- drand scheme identifiers and hash-to-curve domain separation tags

Networks may override the scanner knobs via `vrf_adapter.config.EngineConfig`,
but code that needs stable compile-time defaults can import from here.
"""

from __future__ import annotations

# -----------------------------
# Scanner bounds
# -----------------------------
# Limit range of events per eth_getLogs call to comply with RPC providers.
MAX_RANGE: int = 100
# Limit number of range scans per invocation to avoid hitting the executor timeout.
MAX_REQUESTS: int = 100
# Blocks to look back on the very first invocation (no cursor persisted yet).
LOOKBACK_BLOCKS: int = 2000

# Key under which the cursor is persisted in the external key-value store.
CURSOR_KEY: str = "lastBlockNumber"

# -----------------------------
# Derivation
# -----------------------------
WORD_BYTES: int = 32
MAX_UINT32: int = 0xFFFFFFFF
# Upper bound on words per request (guard-rail, mirrors common coordinator limits).
MAX_NUM_WORDS: int = 500

# Extra rounds added to the round at the request's block time. 0 serves the
# round already published when the request was mined.
DEFAULT_ROUND_DELAY: int = 0

# -----------------------------
# Registry ABI
# -----------------------------
SIG_REQUEST_RANDOM_WORDS: str = "requestRandomWords(uint32,uint16)"
SIG_REQUEST_FOR_CONSUMER: str = "requestRandomWordsForConsumer(uint32,address)"
SIG_FULFILL_RANDOMNESS: str = "fulfillRandomness(uint256[],bytes)"
SIG_RAW_FULFILL: str = "rawFulfillRandomWords(uint256,uint256[])"
SIG_IS_PENDING: str = "isPending(uint256)"
SIG_RANDOM_WORDS_OF: str = "randomWordsOf(uint256,uint256)"
SIG_REQUEST_ID: str = "requestId()"
SIG_FULFILLER: str = "fulfiller()"
SIG_LAST_REQUEST_ID: str = "lastRequestId()"
# Proxy in front of the registry (EIP-1967 style transparent proxies expose this).
SIG_IMPLEMENTATION: str = "implementation()"

EVENT_RANDOMNESS_REQUESTED: str = "RandomnessRequested(bytes)"
EVENT_RANDOM_WORDS_FULFILLED: str = "RandomWordsFulfilled(uint256)"

# Layout of the RandomnessRequested payload:
#   abi.encode(uint256 requestId, address consumer, uint32 numWords,
#              uint16 confirmations, address sender)
REQUEST_PAYLOAD_TYPES: tuple = ("uint256", "address", "uint32", "uint16", "address")

# Confirmations applied to requestRandomWordsForConsumer (no explicit argument).
DEFAULT_CONFIRMATIONS: int = 1

# -----------------------------
# drand schemes
# -----------------------------
SCHEME_CHAINED: str = "pedersen-bls-chained"
SCHEME_UNCHAINED: str = "pedersen-bls-unchained"
SCHEME_UNCHAINED_G1: str = "bls-unchained-on-g1"
SCHEME_UNCHAINED_G1_RFC9380: str = "bls-unchained-g1-rfc9380"

DST_G2: bytes = b"BLS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_NUL_"
DST_G1: bytes = b"BLS_SIG_BLS12381G1_XMD:SHA-256_SSWU_RO_NUL_"

DEFAULT_DRAND_URLS: tuple = (
    "https://api.drand.sh",
    "https://api2.drand.sh",
    "https://api3.drand.sh",
    "https://drand.cloudflare.com",
)

__all__ = [
    "MAX_RANGE",
    "MAX_REQUESTS",
    "LOOKBACK_BLOCKS",
    "CURSOR_KEY",
    "WORD_BYTES",
    "MAX_UINT32",
    "MAX_NUM_WORDS",
    "DEFAULT_ROUND_DELAY",
    "SIG_REQUEST_RANDOM_WORDS",
    "SIG_REQUEST_FOR_CONSUMER",
    "SIG_FULFILL_RANDOMNESS",
    "SIG_RAW_FULFILL",
    "SIG_IS_PENDING",
    "SIG_RANDOM_WORDS_OF",
    "SIG_REQUEST_ID",
    "SIG_FULFILLER",
    "SIG_LAST_REQUEST_ID",
    "SIG_IMPLEMENTATION",
    "EVENT_RANDOMNESS_REQUESTED",
    "EVENT_RANDOM_WORDS_FULFILLED",
    "REQUEST_PAYLOAD_TYPES",
    "DEFAULT_CONFIRMATIONS",
    "SCHEME_CHAINED",
    "SCHEME_UNCHAINED",
    "SCHEME_UNCHAINED_G1",
    "SCHEME_UNCHAINED_G1_RFC9380",
    "DST_G2",
    "DST_G1",
    "DEFAULT_DRAND_URLS",
]
