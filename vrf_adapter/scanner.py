"""
Cursor-bounded log scanner.

Each call to :meth:`LogScanner.scan` performs one bounded pass:

1. read the chain head;
2. without a cursor, start at ``from_block - 1`` if configured, else at
   ``head - lookback_blocks``;
3. fetch logs for ``[cursor + 1, min(cursor + max_range, head)]``, advance
   the in-memory cursor, and repeat until the head is reached or
   ``max_requests`` ranges have been fetched.

A failed range raises :class:`~vrf_adapter.errors.RpcFailure`; everything
gathered in the pass is dropped and the caller keeps its old cursor, so the
same range is fetched again next time. The scanner never persists anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .chain import ChainClient
from .constants import LOOKBACK_BLOCKS, MAX_RANGE, MAX_REQUESTS
from .errors import RpcFailure
from .metrics import METRICS, Metrics
from .types import Cursor, Log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """
    logs:    matched logs in (block, log index) order
    cursor:  last block covered by the ranges fetched in this pass
    head:    chain head observed at the start of the pass
    ranges:  number of eth_getLogs ranges fetched
    """

    logs: List[Log] = field(default_factory=list)
    cursor: Cursor = field(default_factory=lambda: Cursor(0))
    head: int = 0
    ranges: int = 0

    @property
    def caught_up(self) -> bool:
        return self.cursor.last_processed_block >= self.head


class LogScanner:
    def __init__(
        self,
        chain: ChainClient,
        *,
        address: str,
        topics: Sequence[Optional[str]] = (),
        max_range: int = MAX_RANGE,
        max_requests: int = MAX_REQUESTS,
        lookback_blocks: int = LOOKBACK_BLOCKS,
        from_block: Optional[int] = None,
        metrics: Metrics = METRICS,
    ) -> None:
        if max_range <= 0 or max_requests <= 0:
            raise ValueError("max_range and max_requests must be positive")
        self.chain = chain
        self.address = address
        self.topics = list(topics)
        self.max_range = max_range
        self.max_requests = max_requests
        self.lookback_blocks = lookback_blocks
        self.from_block = from_block
        self.metrics = metrics

    def initial_cursor(self, head: int) -> Cursor:
        if self.from_block is not None:
            return Cursor(max(self.from_block - 1, 0))
        return Cursor(max(head - self.lookback_blocks, 0))

    def scan(self, cursor: Optional[Cursor]) -> ScanResult:
        head = self.chain.block_number()
        if cursor is None:
            cursor = self.initial_cursor(head)
            logger.info("no cursor stored; starting scan", extra={"block": cursor.last_processed_block, "head": head})

        last = cursor.last_processed_block
        logs: List[Log] = []
        ranges = 0
        while last < head and ranges < self.max_requests:
            ranges += 1
            lo = last + 1
            hi = min(last + self.max_range, head)
            try:
                batch = self.chain.get_logs(address=self.address, topics=self.topics, from_block=lo, to_block=hi)
            except RpcFailure:
                self.metrics.record_scan(ok=False)
                logger.warning("range scan failed", extra={"from_block": lo, "to_block": hi})
                raise
            self.metrics.record_scan(ok=True)
            logs.extend(batch)
            last = hi

        logs.sort(key=lambda lg: lg.sort_key)
        if last < head:
            logger.info("scan budget exhausted", extra={"block": last, "head": head, "ranges": ranges})
        return ScanResult(logs=logs, cursor=cursor.advanced_to(last), head=head, ranges=ranges)


__all__ = ["LogScanner", "ScanResult"]
