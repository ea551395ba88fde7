"""Property tests for the pieces whose correctness is arithmetic."""

from typing import List, Optional, Sequence, Tuple

from hypothesis import given
from hypothesis import strategies as st
from prometheus_client import CollectorRegistry

from vrf_adapter import abi
from vrf_adapter.beacon import NETWORKS
from vrf_adapter.constants import REQUEST_PAYLOAD_TYPES
from vrf_adapter.errors import AbiError
from vrf_adapter.metrics import Metrics
from vrf_adapter.scanner import LogScanner
from vrf_adapter.types import Cursor, Log

_METRICS = Metrics(registry=CollectorRegistry())


class _HeadOnlyChain:
    def __init__(self, head: int) -> None:
        self.head = head
        self.ranges: List[Tuple[int, int]] = []

    def block_number(self) -> int:
        return self.head

    def get_logs(self, *, address: str, topics: Sequence[Optional[str]], from_block: int, to_block: int) -> List[Log]:
        self.ranges.append((from_block, to_block))
        return []


@given(
    name=st.sampled_from(sorted(NETWORKS)),
    offset=st.integers(min_value=0, max_value=10**9),
)
def test_round_at_is_latest_published_round(name, offset):
    info = NETWORKS[name]
    t = info.genesis_time + offset
    r = info.round_at(t)
    assert info.time_of_round(r) <= t < info.time_of_round(r + 1)


@given(
    head=st.integers(min_value=0, max_value=5_000),
    start=st.integers(min_value=0, max_value=5_000),
    max_range=st.integers(min_value=1, max_value=300),
    max_requests=st.integers(min_value=1, max_value=40),
)
def test_scan_ranges_are_contiguous_and_bounded(head, start, max_range, max_requests):
    chain = _HeadOnlyChain(head)
    scanner = LogScanner(chain, address="0x" + "11" * 20, max_range=max_range, max_requests=max_requests, metrics=_METRICS)
    res = scanner.scan(Cursor(start))

    assert len(chain.ranges) <= max_requests
    expected_lo = start + 1
    for lo, hi in chain.ranges:
        assert lo == expected_lo
        assert lo <= hi <= head
        assert hi - lo + 1 <= max_range
        expected_lo = hi + 1
    assert res.cursor.last_processed_block == max(start, chain.ranges[-1][1] if chain.ranges else start)
    # either caught up, or the whole budget was used
    assert res.caught_up or len(chain.ranges) == max_requests


@given(data=st.binary(max_size=400))
def test_payload_decoding_fails_cleanly(data):
    try:
        abi.decode(REQUEST_PAYLOAD_TYPES, data)
    except AbiError:
        pass
