"""
vrf_adapter.beacon.verify
=========================

BLS12-381 verification of drand beacons using ``py_ecc``.

A beacon is accepted only if

1. its signature verifies under the pinned group public key for the message
   the chain's scheme prescribes, and
2. ``randomness == sha256(signature)``.

Schemes
-------
================================  ==========  ==========  =================================
scheme                            signature   public key  message
================================  ==========  ==========  =================================
pedersen-bls-chained              G2 (96 B)   G1 (48 B)   sha256(prev_sig ‖ u64be(round))
pedersen-bls-unchained            G2 (96 B)   G1 (48 B)   sha256(u64be(round))
bls-unchained-on-g1               G1 (48 B)   G2 (96 B)   sha256(u64be(round)), G2 DST
bls-unchained-g1-rfc9380          G1 (48 B)   G2 (96 B)   sha256(u64be(round)), G1 DST
================================  ==========  ==========  =================================

``bls-unchained-on-g1`` hashes to G1 with the *G2* domain separation tag; that
quirk is part of the deployed network and must be reproduced exactly.

Pairings are pure Python; a single verification takes on the order of a
second. Callers should cache verified beacons rather than re-verify.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from py_ecc.bls.g2_primitives import pubkey_to_G1, signature_to_G2, subgroup_check
from py_ecc.bls.hash_to_curve import hash_to_G1, hash_to_G2
from py_ecc.optimized_bls12_381 import FQ12, G1, G2, final_exponentiate, is_inf, neg, pairing

from ..constants import DST_G1, DST_G2, SCHEME_UNCHAINED_G1
from ..errors import BeaconVerificationFailed
from ..types import Beacon
from .chain_info import ChainInfo

__all__ = [
    "beacon_message",
    "verify_g2_signature",
    "verify_g1_signature",
    "verify_beacon",
]


def beacon_message(round_: int, previous_signature: Optional[bytes] = None) -> bytes:
    """Digest that the group signs for *round_*."""
    h = hashlib.sha256()
    if previous_signature is not None:
        h.update(previous_signature)
    h.update(round_.to_bytes(8, "big"))
    return h.digest()


def _dst_for(info: ChainInfo) -> bytes:
    if info.signatures_on_g1 and info.scheme != SCHEME_UNCHAINED_G1:
        return DST_G1
    return DST_G2


def verify_g2_signature(public_key: bytes, signature: bytes, message: bytes, dst: bytes = DST_G2) -> bool:
    """Signature on G2, public key on G1: e(sig, g1) == e(H(m), pk)."""
    if len(public_key) != 48 or len(signature) != 96:
        return False
    try:
        pk = pubkey_to_G1(public_key)
        sig = signature_to_G2(signature)
    except (ValueError, AssertionError):
        return False
    if is_inf(pk) or not subgroup_check(pk) or not subgroup_check(sig):
        return False
    hm = hash_to_G2(message, dst, hashlib.sha256)
    fe = final_exponentiate(
        pairing(sig, G1, final_exponentiate=False) * pairing(hm, neg(pk), final_exponentiate=False)
    )
    return fe == FQ12.one()


def verify_g1_signature(public_key: bytes, signature: bytes, message: bytes, dst: bytes = DST_G1) -> bool:
    """Signature on G1, public key on G2: e(g2, sig) == e(pk, H(m))."""
    if len(public_key) != 96 or len(signature) != 48:
        return False
    try:
        pk = signature_to_G2(public_key)
        sig = pubkey_to_G1(signature)
    except (ValueError, AssertionError):
        return False
    if is_inf(pk) or not subgroup_check(pk) or not subgroup_check(sig):
        return False
    hm = hash_to_G1(message, dst, hashlib.sha256)
    fe = final_exponentiate(
        pairing(G2, sig, final_exponentiate=False) * pairing(neg(pk), hm, final_exponentiate=False)
    )
    return fe == FQ12.one()


def verify_beacon(beacon: Beacon, info: ChainInfo) -> Beacon:
    """
    Verify *beacon* against the pinned *info*; return it unchanged on success.

    Raises:
        BeaconVerificationFailed: on any mismatch.
    """
    if not hmac.compare_digest(hashlib.sha256(beacon.signature).digest(), beacon.randomness):
        raise BeaconVerificationFailed(beacon.round, "randomness-mismatch")

    if info.chained:
        if not beacon.previous_signature:
            raise BeaconVerificationFailed(beacon.round, "missing-previous-signature")
        msg = beacon_message(beacon.round, beacon.previous_signature)
    else:
        msg = beacon_message(beacon.round)

    if info.signatures_on_g1:
        ok = verify_g1_signature(info.public_key_bytes, beacon.signature, msg, _dst_for(info))
    else:
        ok = verify_g2_signature(info.public_key_bytes, beacon.signature, msg, _dst_for(info))
    if not ok:
        raise BeaconVerificationFailed(beacon.round, "bad-signature")
    return beacon
