"""Shared test doubles: fake beacon sources, a recording chain wrapper, a proxy contract."""

from __future__ import annotations

import hashlib
from typing import Callable, List, Optional, Sequence, Tuple

from vrf_adapter.beacon import QUICKNET, ChainInfo
from vrf_adapter.chain.local import Contract, LocalChain, external
from vrf_adapter.constants import SIG_IMPLEMENTATION
from vrf_adapter.errors import RpcFailure
from vrf_adapter.types import Beacon, Block, Log

# Local chain genesis, safely after the quicknet genesis.
GENESIS_TIME = QUICKNET.genesis_time + 3_000


def fake_beacon(round_: int) -> Beacon:
    sig = hashlib.sha256(b"fake-signature:%d" % round_).digest() * 3
    return Beacon(round=round_, randomness=hashlib.sha256(sig).digest(), signature=sig)


class FakeBeaconSource:
    """Deterministic beacon source; optionally fails from the N-th fetch on."""

    def __init__(
        self,
        info: ChainInfo = QUICKNET,
        *,
        error: Optional[Exception] = None,
        fail_from: int = 0,
    ) -> None:
        self.info = info
        self.error = error
        self.fail_from = fail_from
        self.fetched: List[int] = []

    def fetch_beacon(self, round_or_time=None) -> Beacon:
        if self.error is not None and len(self.fetched) >= self.fail_from:
            raise self.error
        self.fetched.append(round_or_time)
        return fake_beacon(round_or_time)


class RecordingChain:
    """Wraps a LocalChain, records eth_getLogs ranges and can fail chosen ranges."""

    def __init__(self, inner: LocalChain, fail_on: Optional[Callable[[int, int], bool]] = None) -> None:
        self.inner = inner
        self.fail_on = fail_on
        self.ranges: List[Tuple[int, int]] = []

    def block_number(self) -> int:
        return self.inner.block_number()

    def get_block(self, number: int) -> Block:
        return self.inner.get_block(number)

    def call(self, to: str, data: bytes) -> bytes:
        return self.inner.call(to, data)

    def get_logs(self, *, address: str, topics: Sequence[Optional[str]], from_block: int, to_block: int) -> List[Log]:
        self.ranges.append((from_block, to_block))
        if self.fail_on is not None and self.fail_on(from_block, to_block):
            raise RpcFailure("eth_getLogs", "query returned more than 10000 results")
        return self.inner.get_logs(address=address, topics=topics, from_block=from_block, to_block=to_block)


class Proxy(Contract):
    def __init__(self, implementation: str) -> None:
        super().__init__()
        self._implementation = implementation

    @external(SIG_IMPLEMENTATION, returns=["address"])
    def implementation(self) -> str:
        return self._implementation
