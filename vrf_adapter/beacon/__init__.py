"""
vrf_adapter.beacon
==================

drand beacon access: pinned chain parameters, round/time mapping, BLS
verification and an HTTP client that never returns an unverified value.

The `BeaconSource` protocol is what the engine depends on; `DrandClient`
satisfies it, and tests substitute in-memory sources.
"""

from __future__ import annotations

from typing import Protocol

from ..types import Beacon
from .chain_info import FASTNET, MAINNET, NETWORKS, QUICKNET, ChainInfo, network, round_at, time_of_round
from .client import DrandClient, RoundOrTime


class BeaconSource(Protocol):
    info: ChainInfo

    def fetch_beacon(self, round_or_time: RoundOrTime = None) -> Beacon:
        """Return a verified beacon or raise BeaconUnavailable / BeaconVerificationFailed."""
        ...


__all__ = [
    "BeaconSource",
    "ChainInfo",
    "DrandClient",
    "FASTNET",
    "MAINNET",
    "NETWORKS",
    "QUICKNET",
    "network",
    "round_at",
    "time_of_round",
]
