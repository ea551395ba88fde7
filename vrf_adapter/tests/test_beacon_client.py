import datetime as dt
from typing import Any, Dict, List, Tuple

import pytest
import requests

from vrf_adapter.beacon import QUICKNET, DrandClient
from vrf_adapter.errors import BeaconUnavailable, BeaconVerificationFailed
from vrf_adapter.tests.helpers import fake_beacon

INFO_DOC = {
    "public_key": QUICKNET.public_key,
    "period": QUICKNET.period,
    "genesis_time": QUICKNET.genesis_time,
    "hash": QUICKNET.hash,
    "schemeID": QUICKNET.scheme,
}


class FakeResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Routes GETs by exact URL; unknown URLs answer 404. Exceptions are raised."""

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = routes
        self.calls: List[Tuple[str, float]] = []
        self.closed = False

    def get(self, url: str, timeout: float = None) -> FakeResponse:
        self.calls.append((url, timeout))
        r = self.routes.get(url)
        if isinstance(r, Exception):
            raise r
        if r is None:
            return FakeResponse(404, {"error": "not found"})
        return r

    def close(self) -> None:
        self.closed = True


def _doc(round_: int) -> Dict[str, Any]:
    b = fake_beacon(round_)
    return {"round": round_, "randomness": b.randomness.hex(), "signature": b.signature.hex()}


def _url(base: str, path: str) -> str:
    return f"{base}/{QUICKNET.hash}/{path}"


def _accept(beacon, info):
    return beacon


def _client(routes, urls=("https://a.example",), **kw) -> Tuple[DrandClient, FakeSession]:
    session = FakeSession(routes)
    kw.setdefault("verifier", _accept)
    return DrandClient(QUICKNET, urls, session=session, timeout=2.0, **kw), session


def test_fetch_by_round_checks_info_first():
    a = "https://a.example"
    client, session = _client({_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/1000"): FakeResponse(200, _doc(1000))})
    b = client.fetch_beacon(1000)
    assert b == fake_beacon(1000)
    assert [u for u, _ in session.calls] == [_url(a, "info"), _url(a, "public/1000")]
    assert all(t == 2.0 for _, t in session.calls)


def test_fetch_by_timestamp_and_datetime():
    a = "https://a.example"
    t = QUICKNET.time_of_round(500) + 1
    client, session = _client({_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/500"): FakeResponse(200, _doc(500))})
    assert client.fetch_beacon(t).round == 500
    assert client.fetch_beacon(dt.datetime.fromtimestamp(t, tz=dt.timezone.utc)).round == 500
    assert client.round_for(None) is None
    assert client.round_for(12) == 12


def test_latest():
    a = "https://a.example"
    client, _ = _client({_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/latest"): FakeResponse(200, _doc(77))})
    assert client.latest().round == 77


def test_failover_to_next_relay():
    a, b = "https://a.example", "https://b.example/"
    routes = {
        _url(a, "info"): requests.exceptions.ConnectionError("down"),
        _url("https://b.example", "info"): FakeResponse(200, INFO_DOC),
        _url(a, "public/10"): FakeResponse(503, {}),
        _url("https://b.example", "public/10"): FakeResponse(200, _doc(10)),
    }
    client, session = _client(routes, urls=(a, b))
    assert client.fetch_beacon(10).round == 10
    assert len(session.calls) == 4


def test_all_relays_failing_is_unavailable():
    a = "https://a.example"
    client, _ = _client({_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/5"): FakeResponse(200, ValueError("bad json"))})
    with pytest.raises(BeaconUnavailable) as ei:
        client.fetch_beacon(5)
    assert ei.value.round == 5


def test_unpublished_round_is_unavailable():
    a = "https://a.example"
    client, _ = _client({_url(a, "info"): FakeResponse(200, INFO_DOC)})
    with pytest.raises(BeaconUnavailable):
        client.fetch_beacon(99_999_999)


def test_chain_info_mismatch():
    a = "https://a.example"
    doc = dict(INFO_DOC, hash="00" * 32)
    client, _ = _client({_url(a, "info"): FakeResponse(200, doc), _url(a, "public/1"): FakeResponse(200, _doc(1))})
    with pytest.raises(BeaconVerificationFailed) as ei:
        client.fetch_beacon(1)
    assert ei.value.reason.startswith("chain-hash-mismatch")

    doc = dict(INFO_DOC, public_key="ab" * 96)
    client, _ = _client({_url(a, "info"): FakeResponse(200, doc), _url(a, "public/1"): FakeResponse(200, _doc(1))})
    with pytest.raises(BeaconVerificationFailed):
        client.fetch_beacon(1)


def test_round_mismatch_and_malformed_beacons():
    a = "https://a.example"
    routes = {
        _url(a, "info"): FakeResponse(200, INFO_DOC),
        _url(a, "public/3"): FakeResponse(200, _doc(4)),
        _url(a, "public/6"): FakeResponse(200, {"round": 6, "randomness": "zz", "signature": "00"}),
    }
    client, _ = _client(routes)
    with pytest.raises(BeaconVerificationFailed) as ei:
        client.fetch_beacon(3)
    assert "round-mismatch" in ei.value.reason
    with pytest.raises(BeaconVerificationFailed):
        client.fetch_beacon(6)


def test_verified_beacons_are_cached():
    a = "https://a.example"
    client, session = _client({_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/8"): FakeResponse(200, _doc(8))})
    first = client.fetch_beacon(8)
    assert client.fetch_beacon(8) is first
    assert len(session.calls) == 2


def test_rejected_beacons_are_not_cached():
    a = "https://a.example"
    seen = []

    def verifier(beacon, info):
        seen.append(beacon.round)
        if len(seen) == 1:
            raise BeaconVerificationFailed(beacon.round, "bad-signature")
        return beacon

    client, session = _client(
        {_url(a, "info"): FakeResponse(200, INFO_DOC), _url(a, "public/8"): FakeResponse(200, _doc(8))},
        verifier=verifier,
    )
    with pytest.raises(BeaconVerificationFailed):
        client.fetch_beacon(8)
    assert client.fetch_beacon(8).round == 8
    assert seen == [8, 8]


def test_cache_is_bounded():
    a = "https://a.example"
    routes = {_url(a, "info"): FakeResponse(200, INFO_DOC)}
    routes.update({_url(a, f"public/{r}"): FakeResponse(200, _doc(r)) for r in (1, 2, 3)})
    client, session = _client(routes, cache_size=2)
    for r in (1, 2, 3):
        client.fetch_beacon(r)
    before = len(session.calls)
    client.fetch_beacon(1)  # evicted, fetched again
    assert len(session.calls) == before + 1


def test_invalid_inputs_and_close():
    client, session = _client({})
    with pytest.raises(ValueError):
        client.round_for(0)
    with pytest.raises(TypeError):
        client.round_for("10")  # type: ignore[arg-type]
    with client:
        pass
    assert session.closed
    with pytest.raises(ValueError):
        DrandClient(QUICKNET, [])
