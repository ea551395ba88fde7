"""
vrf_adapter.beacon.client
=========================

HTTP client for a drand network with mandatory verification.

    from vrf_adapter.beacon import DrandClient, QUICKNET

    client = DrandClient(QUICKNET)
    b = client.fetch_beacon(1_700_000_000)   # by timestamp → round ≤ t
    b = client.fetch_beacon(4_000_000)       # by round
    b = client.fetch_beacon(None)            # latest

Behavior
--------
- Before the first beacon is served, the node's ``/{hash}/info`` is compared
  with the pinned chain hash and public key (chain verification parameters).
  A mismatch is a :class:`BeaconVerificationFailed`.
- Every beacon is verified with :func:`vrf_adapter.beacon.verify.verify_beacon`
  before it is cached or returned. Only verified beacons enter the LRU cache.
- Base URLs are tried in order; transport errors, 5xx and "not yet
  published" answers move on to the next URL. If all fail the error is
  :class:`BeaconUnavailable`. A verification failure is raised immediately.

Integer inputs below ``ROUND_TIME_THRESHOLD`` are rounds; larger integers,
floats and datetimes are timestamps.
"""

from __future__ import annotations

import datetime as _dt
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Sequence, Union

import requests

from ..constants import DEFAULT_DRAND_URLS
from ..errors import BeaconUnavailable, BeaconVerificationFailed
from ..metrics import METRICS, Metrics
from ..types import Beacon
from ..utils.bytes import from_hex
from .chain_info import ChainInfo, round_at
from .verify import verify_beacon

logger = logging.getLogger(__name__)

RoundOrTime = Union[None, int, float, _dt.datetime]

# Integers at or above this value are UNIX timestamps (2001-09-09), below are rounds.
ROUND_TIME_THRESHOLD = 1_000_000_000

Verifier = Callable[[Beacon, ChainInfo], Beacon]


class DrandClient:
    """
    Args:
        info: pinned chain parameters (hash, public key, genesis, period, scheme).
        urls: base URLs of drand HTTP relays.
        timeout: per-request timeout in seconds.
        cache_size: number of verified beacons kept in memory (0 disables).
        session: optional ``requests.Session`` (tests inject fakes here).
        verifier: signature verifier; replaceable but never skippable.
        metrics: Prometheus instruments (defaults to the process-wide set).
    """

    def __init__(
        self,
        info: ChainInfo,
        urls: Sequence[str] = DEFAULT_DRAND_URLS,
        *,
        timeout: float = 5.0,
        cache_size: int = 256,
        session: Optional[requests.Session] = None,
        verifier: Verifier = verify_beacon,
        metrics: Metrics = METRICS,
    ) -> None:
        if not urls:
            raise ValueError("at least one drand URL is required")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.info = info
        self._urls = [u.rstrip("/") for u in urls]
        self._timeout = timeout
        self._cache_size = max(int(cache_size), 0)
        self._cache: "OrderedDict[int, Beacon]" = OrderedDict()
        self._session = session or requests.Session()
        self._verifier = verifier
        self._metrics = metrics
        self._info_checked = False

    # --- public API ------------------------------------------------------

    def round_for(self, round_or_time: RoundOrTime) -> Optional[int]:
        """Resolve the input to a round number (None means latest)."""
        if round_or_time is None:
            return None
        if isinstance(round_or_time, _dt.datetime) or isinstance(round_or_time, float):
            return round_at(round_or_time, self.info)
        if isinstance(round_or_time, bool) or not isinstance(round_or_time, int):
            raise TypeError(f"expected round, timestamp or datetime, got {type(round_or_time).__name__}")
        if round_or_time >= ROUND_TIME_THRESHOLD:
            return round_at(round_or_time, self.info)
        if round_or_time < 1:
            raise ValueError("rounds start at 1")
        return round_or_time

    def fetch_beacon(self, round_or_time: RoundOrTime = None) -> Beacon:
        """Fetch and verify the beacon for a round, a timestamp, or the latest one."""
        rnd = self.round_for(round_or_time)
        if rnd is not None and rnd in self._cache:
            self._cache.move_to_end(rnd)
            return self._cache[rnd]

        try:
            with self._metrics.beacon_timer():
                self._check_info()
                raw = self._get_json(f"public/{rnd if rnd is not None else 'latest'}", rnd)
                beacon = self._verifier(self._parse(raw, rnd), self.info)
        except BeaconUnavailable:
            self._metrics.record_beacon_failure("unavailable")
            raise
        except BeaconVerificationFailed:
            self._metrics.record_beacon_failure("verification")
            raise

        self._remember(beacon)
        logger.debug("beacon verified", extra={"round": beacon.round})
        return beacon

    def latest(self) -> Beacon:
        return self.fetch_beacon(None)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "DrandClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- internals -------------------------------------------------------

    def _check_info(self) -> None:
        if self._info_checked:
            return
        doc = self._get_json("info", None)
        remote_hash = str(doc.get("hash", "")).lower()
        remote_pk = str(doc.get("public_key", "")).lower()
        if remote_hash != self.info.hash.lower():
            raise BeaconVerificationFailed(None, f"chain-hash-mismatch: {remote_hash}")
        if remote_pk != self.info.public_key.lower():
            raise BeaconVerificationFailed(None, "public-key-mismatch")
        self._info_checked = True

    def _get_json(self, path: str, rnd: Optional[int]) -> Dict[str, Any]:
        errors = []
        for base in self._urls:
            url = f"{base}/{self.info.hash}/{path}"
            try:
                resp = self._session.get(url, timeout=self._timeout)
            except requests.exceptions.RequestException as e:
                errors.append(f"{base}: {e}")
                logger.warning("drand relay unreachable", extra={"url": url, "error": str(e)})
                continue
            if resp.status_code != 200:
                # 404/425 for rounds not yet published, 5xx for relay trouble
                errors.append(f"{base}: HTTP {resp.status_code}")
                continue
            try:
                doc = resp.json()
            except ValueError:
                errors.append(f"{base}: non-JSON response")
                continue
            if not isinstance(doc, dict):
                errors.append(f"{base}: unexpected JSON shape")
                continue
            return doc
        raise BeaconUnavailable(rnd, "; ".join(errors) or "no relays configured")

    def _parse(self, doc: Dict[str, Any], rnd: Optional[int]) -> Beacon:
        try:
            got_round = int(doc["round"])
            randomness = from_hex(str(doc["randomness"]))
            signature = from_hex(str(doc["signature"]))
            prev_hex = doc.get("previous_signature")
            prev = from_hex(str(prev_hex)) if prev_hex else None
            beacon = Beacon(
                round=got_round,
                randomness=randomness,
                signature=signature,
                previous_signature=prev,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BeaconVerificationFailed(rnd, f"malformed-beacon: {e}") from e
        if rnd is not None and got_round != rnd:
            raise BeaconVerificationFailed(rnd, f"round-mismatch: got {got_round}")
        return beacon

    def _remember(self, beacon: Beacon) -> None:
        if not self._cache_size:
            return
        self._cache[beacon.round] = beacon
        self._cache.move_to_end(beacon.round)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)


__all__ = ["DrandClient", "RoundOrTime", "ROUND_TIME_THRESHOLD"]
