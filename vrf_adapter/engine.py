"""
vrf_adapter.engine
==================

Fulfillment engine: turns pending registry requests into delivery calls.

One invocation (``run``)::

    cursor ─► scan registry logs ─► decode RandomnessRequested payloads
           ─► keep requests from allowed senders, still pending on-chain
           ─► round = round_at(block timestamp of the request) + round_delay
           ─► fetch + verify beacon ─► derive words
           ─► Call(registry, fulfillRandomness(words, payload))

The cursor is explicit state: it comes in as an argument and the cursor to
persist comes back in :class:`EngineResult`. Nothing is stored here;
``run_with_store`` is the thin runner that loads and saves it.

Outcomes
--------
- calls built         → can_exec=True, cursor advanced
- nothing eligible    → can_exec=False, no calls, cursor advanced
- RpcFailure          → can_exec=False, cursor unchanged
- beacon failure      → can_exec=False, cursor unchanged, no calls at all
- unservable request  → can_exec=False, cursor unchanged (outcome "error")

Requests whose confirmation depth is not reached yet stop the pass at their
block: only requests from earlier blocks are delivered and the cursor is
left just before that block so the request is seen again next time.

``run_event`` is the reactive variant that serves a single triggering log. It
applies the same confirmation depth check and answers "Waiting for
confirmations" until the request's block is deep enough.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import abi
from .beacon import BeaconSource
from .chain import ChainClient
from .config import EngineConfig
from .constants import EVENT_RANDOMNESS_REQUESTED, SIG_FULFILL_RANDOMNESS, SIG_IMPLEMENTATION, SIG_IS_PENDING
from .derive import words_for_beacon
from .errors import AbiError, BeaconUnavailable, BeaconVerificationFailed, ConfigError, RpcFailure
from .logging import bind, trace_scope
from .metrics import METRICS, Metrics
from .scanner import LogScanner
from .store import CursorStore, load_cursor, save_cursor
from .types import Call, Cursor, Log, RandomnessRequest
from .utils.bytes import normalize_address
from .utils.hash import event_topic

logger = logging.getLogger(__name__)

REQUEST_TOPIC = event_topic(EVENT_RANDOMNESS_REQUESTED)


@dataclass(frozen=True)
class EngineResult:
    can_exec: bool
    calls: List[Call] = field(default_factory=list)
    cursor: Optional[Cursor] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Automation result shape: ``{canExec, callData: [{to, data}], message?}``."""
        d: Dict[str, Any] = {
            "canExec": self.can_exec,
            "callData": [c.to_dict() for c in self.calls],
        }
        if self.message:
            d["message"] = self.message
        return d


class FulfillmentEngine:
    """
    Args:
        config: validated engine configuration.
        chain: chain access (JSON-RPC or local).
        beacon: verified beacon source (normally a DrandClient).
    """

    def __init__(
        self,
        config: EngineConfig,
        chain: ChainClient,
        beacon: BeaconSource,
        *,
        metrics: Metrics = METRICS,
    ) -> None:
        self.config = config
        self.chain = chain
        self.beacon = beacon
        self.metrics = metrics

    # ----- entry points -----------------------------------------------------

    def run(self, cursor: Optional[Cursor]) -> EngineResult:
        with trace_scope():
            bind(component="engine")
            try:
                registry = self.registry_address()
                scan = self._scanner(registry).scan(cursor)
            except RpcFailure as e:
                return self._fail("rpc_failure", f"Rpc call failed: {e.reason}", cursor)

            requests = self._decode(scan.logs)
            eligible, next_cursor = self._confirmed(requests, scan.head, scan.cursor)
            logger.info(
                "scan complete",
                extra={"head": scan.head, "block": next_cursor.last_processed_block, "logs": len(scan.logs), "eligible": len(eligible)},
            )
            return self._fulfill_all(registry, eligible, cursor, next_cursor)

    def run_event(self, log: Log) -> EngineResult:
        """Serve the request carried by a single triggering log (no scanning, no cursor)."""
        with trace_scope():
            bind(component="engine", block=log.block_number)
            try:
                registry = self.registry_address()
            except RpcFailure as e:
                return self._fail("rpc_failure", f"Rpc call failed: {e.reason}", None)
            if normalize_address(log.address) != registry or not log.topics or log.topics[0] != REQUEST_TOPIC:
                self.metrics.record_invocation("idle")
                return EngineResult(False, message="Log is not a RandomnessRequested event of the registry")
            requests = self._decode([log])
            if requests:
                try:
                    head = self.chain.block_number()
                except RpcFailure as e:
                    return self._fail("rpc_failure", f"Rpc call failed: {e.reason}", None)
                if not all(_depth_reached(r, head) for r in requests):
                    self.metrics.record_invocation("idle")
                    return EngineResult(False, message="Waiting for confirmations")
            return self._fulfill_all(registry, requests, None, None)

    # ----- steps ------------------------------------------------------------

    def registry_address(self) -> str:
        if self.config.registry_address is not None:
            return self.config.registry_address
        if self.config.proxy_address is None:
            raise ConfigError("registry_address or proxy_address is required")
        out = self.chain.call(self.config.proxy_address, abi.encode_call(SIG_IMPLEMENTATION, []))
        try:
            (impl,) = abi.decode(["address"], out)
        except AbiError as e:
            raise RpcFailure("eth_call", f"proxy implementation() returned malformed data: {e}") from e
        return impl

    def _scanner(self, registry: str) -> LogScanner:
        c = self.config
        return LogScanner(
            self.chain,
            address=registry,
            topics=[REQUEST_TOPIC],
            max_range=c.max_range,
            max_requests=c.max_requests,
            lookback_blocks=c.lookback_blocks,
            from_block=c.from_block,
            metrics=self.metrics,
        )

    def _decode(self, logs: List[Log]) -> List[RandomnessRequest]:
        out = []
        for lg in logs:
            try:
                req = RandomnessRequest.from_log(lg)
            except AbiError as e:
                logger.warning("undecodable request log skipped", extra={"block": lg.block_number, "error": str(e)})
                continue
            if not self.config.is_allowed(req.sender):
                logger.debug("sender not allowed", extra={"request_id": req.request_id, "sender": req.sender})
                continue
            out.append(req)
        return out

    def _confirmed(
        self, requests: List[RandomnessRequest], head: int, cursor: Cursor
    ) -> Tuple[List[RandomnessRequest], Cursor]:
        """Split off requests that are deep enough; stop at the first block that is not."""
        for i, req in enumerate(requests):
            if not _depth_reached(req, head):
                logger.info(
                    "waiting for confirmations",
                    extra={"request_id": req.request_id, "block": req.block_number, "confirmations": req.confirmations},
                )
                ready = [r for r in requests[:i] if r.block_number < req.block_number]
                return ready, Cursor(req.block_number - 1)
        return requests, cursor

    def _fulfill_all(
        self,
        registry: str,
        requests: List[RandomnessRequest],
        cursor_in: Optional[Cursor],
        cursor_out: Optional[Cursor],
    ) -> EngineResult:
        calls: List[Call] = []
        try:
            for req in requests:
                if self.config.skip_fulfilled and not self._is_pending(registry, req.request_id):
                    logger.debug("request already fulfilled", extra={"request_id": req.request_id})
                    continue
                calls.append(self._fulfillment_call(registry, req))
        except RpcFailure as e:
            return self._fail("rpc_failure", f"Rpc call failed: {e.reason}", cursor_in)
        except (BeaconUnavailable, BeaconVerificationFailed) as e:
            return self._fail("beacon_failure", f"Beacon fetch failed: {e}", cursor_in)
        except ValueError as e:
            # e.g. a block time before the beacon chain's genesis
            return self._fail("error", f"Cannot serve request: {e}", cursor_in)

        if cursor_out is not None:
            self.metrics.set_cursor(cursor_out.last_processed_block)
        if not calls:
            self.metrics.record_invocation("idle")
            return EngineResult(False, cursor=cursor_out, message="No pending randomness requests")
        self.metrics.record_invocation("exec")
        self.metrics.record_fulfilled(len(calls))
        return EngineResult(True, calls=calls, cursor=cursor_out)

    def _is_pending(self, registry: str, request_id: int) -> bool:
        out = self.chain.call(registry, abi.encode_call(SIG_IS_PENDING, [request_id]))
        try:
            return abi.decode(["bool"], out)[0]
        except AbiError as e:
            raise RpcFailure("eth_call", f"isPending returned malformed data: {e}") from e

    def _fulfillment_call(self, registry: str, req: RandomnessRequest) -> Call:
        req = req.with_block_time(self.chain.get_block(req.block_number).timestamp)
        round_ = self.beacon.info.round_at(req.block_time) + self.config.round_delay
        beacon = self.beacon.fetch_beacon(round_)
        words = words_for_beacon(beacon, req.request_id, req.num_words)
        logger.info(
            "fulfillment prepared",
            extra={"request_id": req.request_id, "round": beacon.round, "consumer": req.consumer, "num_words": req.num_words},
        )
        return Call(to=registry, data=abi.encode_call(SIG_FULFILL_RANDOMNESS, [words, req.payload]))

    def _fail(self, outcome: str, message: str, cursor: Optional[Cursor]) -> EngineResult:
        logger.warning("invocation skipped", extra={"outcome": outcome, "reason": message})
        self.metrics.record_invocation(outcome)
        return EngineResult(False, cursor=cursor, message=message)


def _depth_reached(req: RandomnessRequest, head: int) -> bool:
    return head - req.block_number + 1 >= req.confirmations


def run_with_store(engine: FulfillmentEngine, store: CursorStore) -> EngineResult:
    """Load the cursor, run once, and persist the returned cursor if it moved."""
    before = load_cursor(store)
    result = engine.run(before)
    if result.cursor is not None and result.cursor != before:
        save_cursor(store, result.cursor)
    return result


__all__ = ["EngineResult", "FulfillmentEngine", "REQUEST_TOPIC", "run_with_store"]
