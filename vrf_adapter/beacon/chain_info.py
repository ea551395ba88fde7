"""
vrf_adapter.beacon.chain_info
=============================

Pinned parameters of a drand chain and the round/time arithmetic derived
from them.

A drand chain publishes round 1 at ``genesis_time`` and one round every
``period`` seconds afterwards:

    time_of_round(r) = genesis_time + (r - 1) * period
    round_at(t)      = (t - genesis_time) // period + 1      (t >= genesis_time)

`round_at` therefore returns the latest round whose publication time is
``<= t``. Timestamps are UNIX epoch seconds; callers decide what "t" means
(the engine always passes a block timestamp, never the wall clock).

Built-in networks
-----------------
- ``mainnet``  — the default League of Entropy chain (chained, 30 s)
- ``quicknet`` — unchained, signatures on G1, RFC 9380 DST (3 s)
- ``fastnet``  — unchained, signatures on G1, legacy DST (3 s; deprecated
                 upstream but still referenced by deployed adapters)
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from ..constants import (
    SCHEME_CHAINED,
    SCHEME_UNCHAINED,
    SCHEME_UNCHAINED_G1,
    SCHEME_UNCHAINED_G1_RFC9380,
)
from ..errors import ConfigError
from ..utils.bytes import from_hex, is_hex

TimeLike = Union[int, float, _dt.datetime]

_SCHEMES = {SCHEME_CHAINED, SCHEME_UNCHAINED, SCHEME_UNCHAINED_G1, SCHEME_UNCHAINED_G1_RFC9380}


@dataclass(frozen=True)
class ChainInfo:
    """
    hash:         chain hash (hex, 32 bytes); also the URL path segment
    public_key:   group public key (hex; 48 bytes on G1 or 96 bytes on G2)
    period:       seconds between rounds
    genesis_time: UNIX time of round 1
    scheme:       drand scheme id
    """

    hash: str
    public_key: str
    period: int
    genesis_time: int
    scheme: str

    def __post_init__(self) -> None:
        if not is_hex(self.hash) or len(from_hex(self.hash)) != 32:
            raise ConfigError("chain hash must be 32 bytes of hex")
        if not is_hex(self.public_key):
            raise ConfigError("public_key must be hex")
        if self.period <= 0:
            raise ConfigError("period must be > 0")
        if self.genesis_time <= 0:
            raise ConfigError("genesis_time must be > 0")
        if self.scheme not in _SCHEMES:
            raise ConfigError(f"unsupported drand scheme: {self.scheme}")

    @property
    def public_key_bytes(self) -> bytes:
        return from_hex(self.public_key)

    @property
    def signatures_on_g1(self) -> bool:
        return self.scheme in (SCHEME_UNCHAINED_G1, SCHEME_UNCHAINED_G1_RFC9380)

    @property
    def chained(self) -> bool:
        return self.scheme == SCHEME_CHAINED

    def round_at(self, t: TimeLike) -> int:
        return round_at(t, self)

    def time_of_round(self, round_: int) -> int:
        return time_of_round(round_, self)

    @classmethod
    def from_info(cls, info: Mapping[str, Any]) -> "ChainInfo":
        """Build from a node's ``/info`` JSON document."""
        return cls(
            hash=str(info["hash"]),
            public_key=str(info["public_key"]),
            period=int(info["period"]),
            genesis_time=int(info["genesis_time"]),
            scheme=str(info.get("schemeID") or SCHEME_CHAINED),
        )


def _epoch(t: TimeLike) -> float:
    if isinstance(t, _dt.datetime):
        if t.tzinfo is None:
            t = t.replace(tzinfo=_dt.timezone.utc)
        return t.timestamp()
    if isinstance(t, bool) or not isinstance(t, (int, float)):
        raise TypeError(f"expected epoch seconds or datetime, got {type(t).__name__}")
    return float(t)


def round_at(t: TimeLike, info: ChainInfo) -> int:
    """Latest round published at or before *t*. Raises ValueError before genesis."""
    ts = int(_epoch(t))
    if ts < info.genesis_time:
        raise ValueError(f"time {ts} is before chain genesis {info.genesis_time}")
    return (ts - info.genesis_time) // info.period + 1


def time_of_round(round_: int, info: ChainInfo) -> int:
    """Publication time of *round_* (UNIX seconds)."""
    if round_ < 1:
        raise ValueError("rounds start at 1")
    return info.genesis_time + (round_ - 1) * info.period


# -------------------------
# Known networks
# -------------------------

MAINNET = ChainInfo(
    hash="8990e7a9aaed2ffed73dbd7092123d6f289930540d7651336225dc172e51b2ce",
    public_key="868f005eb8e6e4ca0a47c8a77ceaa5309a47978a7c71bc5cce96366b5d7a569937c529eeda66c7293784a9402801af31",
    period=30,
    genesis_time=1595431050,
    scheme=SCHEME_CHAINED,
)

QUICKNET = ChainInfo(
    hash="52db9ba70e0cc0f6eaf7803dd07447a1f5477735fd3f661792ba94600c84e971",
    public_key=(
        "83cf0f2896adee7eb8b5f01fcad3912212c437e0073e911fb90022d3e760183c"
        "8c4b450b6a0a6c3ac6a5776a2d1064510d1fec758c921cc22b0e17e63aaf4bcb"
        "5ed66304de9cf809bd274ca73bab4af5a6e9c76a4bc09e76eae8991ef5ece45a"
    ),
    period=3,
    genesis_time=1692803367,
    scheme=SCHEME_UNCHAINED_G1_RFC9380,
)

FASTNET = ChainInfo(
    hash="dbd506d6ef76e5f386f41c651dcb808c5bcbd75471cc4eafa3f4df7ad4e4c493",
    public_key=(
        "a0b862a7527fee3a731bcb59280ab6abd62d5c0b6ea03dc4ddf6612fdfc9d01f"
        "01c31542541771903475eb1ec6615f8d0df0b8b6dce385811d6dcf8cbefb8759"
        "e5e616a3dfd054c928940766d9a5b9db91e3b697e5d70a975181e007f87fca5e"
    ),
    period=3,
    genesis_time=1677685200,
    scheme=SCHEME_UNCHAINED_G1,
)

NETWORKS: Dict[str, ChainInfo] = {
    "mainnet": MAINNET,
    "quicknet": QUICKNET,
    "fastnet": FASTNET,
}


def network(name: str) -> ChainInfo:
    try:
        return NETWORKS[name.lower()]
    except KeyError:
        raise ConfigError(f"unknown drand network {name!r}; known: {sorted(NETWORKS)}") from None


__all__ = [
    "ChainInfo",
    "TimeLike",
    "round_at",
    "time_of_round",
    "MAINNET",
    "QUICKNET",
    "FASTNET",
    "NETWORKS",
    "network",
]
