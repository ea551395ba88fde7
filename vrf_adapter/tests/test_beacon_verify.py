"""
BLS verification against keys generated on the fly with py_ecc.

Pure-Python pairings are slow (about a second each), so signing material is
built once per module and every test verifies as little as it can.
"""

import hashlib

import pytest
from py_ecc.bls import G2Basic
from py_ecc.bls.g2_primitives import G1_to_pubkey, G2_to_signature
from py_ecc.bls.hash_to_curve import hash_to_G1
from py_ecc.optimized_bls12_381 import G2, multiply

from vrf_adapter.beacon import ChainInfo
from vrf_adapter.beacon.verify import beacon_message, verify_beacon, verify_g1_signature, verify_g2_signature
from vrf_adapter.constants import (
    DST_G1,
    DST_G2,
    SCHEME_CHAINED,
    SCHEME_UNCHAINED,
    SCHEME_UNCHAINED_G1,
    SCHEME_UNCHAINED_G1_RFC9380,
)
from vrf_adapter.errors import BeaconVerificationFailed
from vrf_adapter.types import Beacon

SK = 0x1F2E3D4C5B6A79880123456789ABCDEF
CHAIN_HASH = hashlib.sha256(b"test chain").hexdigest()


def _info(public_key: bytes, scheme: str) -> ChainInfo:
    return ChainInfo(hash=CHAIN_HASH, public_key=public_key.hex(), period=3, genesis_time=1_700_000_000, scheme=scheme)


def _beacon(round_: int, sig: bytes, prev: bytes = None) -> Beacon:
    return Beacon(round=round_, randomness=hashlib.sha256(sig).digest(), signature=sig, previous_signature=prev)


def _sign_g1(sk: int, msg: bytes, dst: bytes) -> bytes:
    return G1_to_pubkey(multiply(hash_to_G1(msg, dst, hashlib.sha256), sk))


@pytest.fixture(scope="module")
def g1_key() -> bytes:
    """Public key on G1 (signatures on G2)."""
    return G2Basic.SkToPk(SK)


@pytest.fixture(scope="module")
def g2_key() -> bytes:
    """Public key on G2 (signatures on G1)."""
    return G2_to_signature(multiply(G2, SK))


def test_beacon_message_layout():
    assert beacon_message(1) == hashlib.sha256((1).to_bytes(8, "big")).digest()
    prev = b"\x01" * 96
    assert beacon_message(5, prev) == hashlib.sha256(prev + (5).to_bytes(8, "big")).digest()


def test_unchained_g2_signature(g1_key):
    info = _info(g1_key, SCHEME_UNCHAINED)
    sig = G2Basic.Sign(SK, beacon_message(1000))
    b = _beacon(1000, sig)
    assert verify_beacon(b, info) is b
    # same signature claimed for a different round
    with pytest.raises(BeaconVerificationFailed):
        verify_beacon(_beacon(1001, sig), info)


def test_chained_g2_signature(g1_key):
    info = _info(g1_key, SCHEME_CHAINED)
    prev = b"\x42" * 96
    sig = G2Basic.Sign(SK, beacon_message(7, prev))
    assert verify_beacon(_beacon(7, sig, prev), info).round == 7

    with pytest.raises(BeaconVerificationFailed) as ei:
        verify_beacon(_beacon(7, sig), info)
    assert ei.value.reason == "missing-previous-signature"


def test_g1_rfc9380_signature(g2_key):
    info = _info(g2_key, SCHEME_UNCHAINED_G1_RFC9380)
    sig = _sign_g1(SK, beacon_message(3), DST_G1)
    assert len(sig) == 48
    assert verify_beacon(_beacon(3, sig), info).round == 3


def test_g1_legacy_dst_is_not_interchangeable(g2_key):
    msg = beacon_message(3)
    sig = _sign_g1(SK, msg, DST_G2)
    assert verify_beacon(_beacon(3, sig), _info(g2_key, SCHEME_UNCHAINED_G1)).round == 3
    with pytest.raises(BeaconVerificationFailed):
        verify_beacon(_beacon(3, sig), _info(g2_key, SCHEME_UNCHAINED_G1_RFC9380))


def test_randomness_must_be_hash_of_signature(g1_key):
    info = _info(g1_key, SCHEME_UNCHAINED)
    sig = b"\x00" * 96
    bad = Beacon(round=1, randomness=hashlib.sha256(b"other").digest(), signature=sig)
    with pytest.raises(BeaconVerificationFailed) as ei:
        verify_beacon(bad, info)
    assert ei.value.reason == "randomness-mismatch"


def test_wrong_key_is_rejected(g1_key):
    other_pk = G2Basic.SkToPk(SK + 1)
    sig = G2Basic.Sign(SK, beacon_message(9))
    with pytest.raises(BeaconVerificationFailed) as ei:
        verify_beacon(_beacon(9, sig), _info(other_pk, SCHEME_UNCHAINED))
    assert ei.value.reason == "bad-signature"


def test_malformed_points_return_false(g1_key, g2_key):
    msg = beacon_message(1)
    assert not verify_g2_signature(g1_key, b"\xff" * 96, msg)
    assert not verify_g2_signature(g1_key[:47], b"\x00" * 96, msg)
    assert not verify_g1_signature(g2_key, b"\xff" * 48, msg)
    assert not verify_g1_signature(g2_key, b"\x00" * 96, msg)
