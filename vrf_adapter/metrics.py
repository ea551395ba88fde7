"""
Prometheus metrics for the VRF fulfillment pipeline.

Instruments
-----------
  • invocations_total{outcome}     — engine runs per outcome
  • scan_ranges_total{outcome}     — eth_getLogs ranges scanned per outcome
  • requests_fulfilled_total       — fulfillment calls built
  • beacon_failures_total{kind}    — beacon fetch/verify failures
  • beacon_fetch_seconds           — latency of fetch-plus-verify
  • cursor_block                   — last cursor returned by the engine

Label vocabularies are small and fixed; unknown values collapse to a
catch-all so cardinality stays bounded.

Usage
-----
    from vrf_adapter.metrics import METRICS

    METRICS.record_invocation("exec")
    with METRICS.beacon_timer():
        client.fetch_beacon(round_)

Construct your own `Metrics(registry=CollectorRegistry())` when a separate
registry is needed (e.g. in tests).
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable, Iterator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

_INVOCATION_OUTCOMES = (
    "exec",          # calls were produced
    "idle",          # nothing eligible
    "rpc_failure",   # chain query failed; cursor unchanged
    "beacon_failure",  # beacon fetch/verify failed; cursor unchanged
    "error",         # anything else
)

_SCAN_OUTCOMES = ("ok", "failed")

_BEACON_FAILURE_KINDS = ("unavailable", "verification", "other")

# Beacon fetch latency (seconds); pure-python pairings dominate the upper buckets
_BEACON_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class Metrics:
    """
    Container for all adapter Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "vrf",
        subsystem: str = "adapter",
        registry=REGISTRY,
        beacon_buckets: Iterable[float] = _BEACON_BUCKETS,
    ) -> None:
        common = dict(namespace=namespace, subsystem=subsystem, registry=registry)
        self.invocations_total = Counter(
            "invocations_total",
            "Engine invocations, labeled by outcome.",
            labelnames=("outcome",),
            **common,
        )
        self.scan_ranges_total = Counter(
            "scan_ranges_total",
            "Block ranges scanned for registry events, labeled by outcome.",
            labelnames=("outcome",),
            **common,
        )
        self.requests_fulfilled_total = Counter(
            "requests_fulfilled_total",
            "Fulfillment calls built for pending requests.",
            **common,
        )
        self.beacon_failures_total = Counter(
            "beacon_failures_total",
            "Beacon fetch or verification failures, labeled by kind.",
            labelnames=("kind",),
            **common,
        )
        self.beacon_fetch_seconds = Histogram(
            "beacon_fetch_seconds",
            "Time spent fetching and verifying one beacon (seconds).",
            buckets=tuple(beacon_buckets),
            **common,
        )
        self.cursor_block = Gauge(
            "cursor_block",
            "Last processed block number returned by the engine.",
            **common,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_invocation(self, outcome: str) -> None:
        if outcome not in _INVOCATION_OUTCOMES:
            outcome = "error"
        self.invocations_total.labels(outcome=outcome).inc()

    def record_scan(self, ok: bool) -> None:
        self.scan_ranges_total.labels(outcome="ok" if ok else "failed").inc()

    def record_fulfilled(self, n: int = 1) -> None:
        self.requests_fulfilled_total.inc(n)

    def record_beacon_failure(self, kind: str) -> None:
        if kind not in _BEACON_FAILURE_KINDS:
            kind = "other"
        self.beacon_failures_total.labels(kind=kind).inc()

    def set_cursor(self, block: int) -> None:
        self.cursor_block.set(block)

    @contextmanager
    def beacon_timer(self) -> Iterator[None]:
        start = perf_counter()
        try:
            yield
        finally:
            self.beacon_fetch_seconds.observe(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = ["Metrics", "METRICS"]
