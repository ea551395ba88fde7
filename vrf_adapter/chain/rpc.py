"""
Ethereum JSON-RPC client (sync, over HTTP with ``requests``).

- Implements the `ChainClient` protocol: eth_blockNumber, eth_getBlockByNumber,
  eth_getLogs, eth_call.
- Retries idempotent calls on transient transport failures and 429/5xx with
  jittered exponential backoff.
- Every failure surfaces as :class:`~vrf_adapter.errors.RpcFailure`.

Example:
    from vrf_adapter.chain.rpc import JsonRpcChain
    chain = JsonRpcChain("http://localhost:8545")
    head = chain.block_number()
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import requests

from ..errors import RpcFailure
from ..types import Block, Log
from ..utils.bytes import from_hex, hex_to_int, int_to_hex, normalize_address, to_hex
from ..version import __version__

logger = logging.getLogger(__name__)


def _is_retriable_http(status: int) -> bool:
    return status in (429, 502, 503, 504)


def _jitter_backoff(base: float, factor: float, attempt: int, jitter: float) -> float:
    return base * (factor ** max(attempt - 1, 0)) + random.random() * jitter


class _Transient(Exception):
    """Internal marker for retriable transport conditions."""


@dataclass
class JsonRpcChain:
    """Synchronous Ethereum JSON-RPC 2.0 client."""

    url: str
    timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.15
    backoff_factor: float = 1.8
    backoff_jitter: float = 0.2
    headers: Optional[Mapping[str, str]] = None
    session: Optional[requests.Session] = None
    _ids: Iterator[int] = field(default_factory=lambda: count(1), repr=False)

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": f"vrf-adapter/{__version__}",
                **dict(self.headers or {}),
            }
        )

    def close(self) -> None:
        if self.session is not None:
            self.session.close()

    def __enter__(self) -> "JsonRpcChain":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- ChainClient -----------------------------------------------------

    def block_number(self) -> int:
        return self._quantity("eth_blockNumber", self.request("eth_blockNumber"))

    def get_block(self, number: int) -> Block:
        res = self.request("eth_getBlockByNumber", [int_to_hex(number), False])
        if not isinstance(res, dict):
            raise RpcFailure("eth_getBlockByNumber", f"block {number} not found")
        return Block(
            number=self._quantity("eth_getBlockByNumber", res.get("number")),
            timestamp=self._quantity("eth_getBlockByNumber", res.get("timestamp")),
            hash=res.get("hash"),
        )

    def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[Optional[str]],
        from_block: int,
        to_block: int,
    ) -> List[Log]:
        res = self.request(
            "eth_getLogs",
            [
                {
                    "address": normalize_address(address),
                    "topics": list(topics),
                    "fromBlock": int_to_hex(from_block),
                    "toBlock": int_to_hex(to_block),
                }
            ],
        )
        if not isinstance(res, list):
            raise RpcFailure("eth_getLogs", "expected a list of logs")
        try:
            logs = [
                Log(
                    address=normalize_address(item["address"]),
                    topics=tuple(str(t).lower() for t in item.get("topics", [])),
                    data=from_hex(item.get("data") or "0x"),
                    block_number=hex_to_int(item["blockNumber"]),
                    log_index=hex_to_int(item.get("logIndex") or "0x0"),
                    transaction_hash=item.get("transactionHash"),
                )
                for item in res
                if not item.get("removed")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise RpcFailure("eth_getLogs", f"malformed log entry: {e}") from e
        logs.sort(key=lambda lg: lg.sort_key)
        return logs

    def call(self, to: str, data: bytes) -> bytes:
        res = self.request("eth_call", [{"to": normalize_address(to), "data": to_hex(data)}, "latest"])
        try:
            return from_hex(res)
        except (TypeError, ValueError) as e:
            raise RpcFailure("eth_call", f"malformed return data: {e}") from e

    # --- JSON-RPC --------------------------------------------------------

    def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Perform a single JSON-RPC request and return `result` or raise RpcFailure."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params or [])}
        last: Optional[str] = None
        for attempt in range(1, self.max_retries + 2):
            try:
                return self._send_once(method, payload)
            except _Transient as e:
                last = str(e)
                if attempt > self.max_retries:
                    break
                delay = _jitter_backoff(self.backoff_base, self.backoff_factor, attempt, self.backoff_jitter)
                logger.debug("rpc retry", extra={"method": method, "attempt": attempt, "delay": round(delay, 3)})
                time.sleep(delay)
        raise RpcFailure(method, f"transport failed: {last}")

    def _send_once(self, method: str, payload: Dict[str, Any]) -> Any:
        assert self.session is not None
        try:
            r = self.session.post(self.url, data=json.dumps(payload), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise _Transient(f"network error: {e}") from e
        if _is_retriable_http(r.status_code):
            raise _Transient(f"HTTP {r.status_code}")
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcFailure(method, f"non-JSON response (HTTP {r.status_code}): {r.text[:256]}") from e
        if not isinstance(resp, dict):
            raise RpcFailure(method, "invalid JSON-RPC response type")
        err = resp.get("error")
        if err:
            raise RpcFailure(method, str(err.get("message", "unknown error")), err.get("code"))
        if "result" not in resp:
            raise RpcFailure(method, "malformed JSON-RPC response")
        return resp["result"]

    @staticmethod
    def _quantity(method: str, q: Any) -> int:
        try:
            return hex_to_int(q)
        except (TypeError, ValueError) as e:
            raise RpcFailure(method, f"invalid quantity {q!r}") from e


__all__ = ["JsonRpcChain"]
