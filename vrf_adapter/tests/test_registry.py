from typing import List

import pytest

from vrf_adapter import abi
from vrf_adapter.chain.local import LocalChain
from vrf_adapter.constants import (
    REQUEST_PAYLOAD_TYPES,
    SIG_FULFILL_RANDOMNESS,
    SIG_FULFILLER,
    SIG_IS_PENDING,
    SIG_LAST_REQUEST_ID,
    SIG_RANDOM_WORDS_OF,
    SIG_RAW_FULFILL,
    SIG_REQUEST_FOR_CONSUMER,
    SIG_REQUEST_ID,
    SIG_REQUEST_RANDOM_WORDS,
)
from vrf_adapter.engine import REQUEST_TOPIC
from vrf_adapter.errors import (
    InvalidConfirmations,
    InvalidFulfillment,
    RequestNotPending,
    Revert,
    RpcFailure,
    UnauthorizedFulfiller,
)
from vrf_adapter.types import RandomnessRequest
from vrf_adapter.utils.hash import event_topic

WORDS = [11, 22, 33]


def _request(dep, consumer, num_words=3, confirmations=1) -> RandomnessRequest:
    rcpt = dep.chain.transact(dep.user, consumer.address, SIG_REQUEST_RANDOM_WORDS, [num_words, confirmations], returns=["uint256"])
    rcpt.raise_for_status()
    (log,) = [lg for lg in rcpt.logs if lg.topics[0] == REQUEST_TOPIC]
    req = RandomnessRequest.from_log(log)
    assert rcpt.output == (req.request_id,)
    return req


def _fulfill(dep, values: List[int], payload: bytes, sender=None):
    return dep.chain.transact(sender or dep.fulfiller, dep.coordinator.address, SIG_FULFILL_RANDOMNESS, [values, payload])


def _pending(dep, rid: int) -> bool:
    return dep.chain.read(dep.coordinator.address, SIG_IS_PENDING, [rid], returns=["bool"])


def _words_of(dep, consumer, rid: int, n: int) -> List[int]:
    return [dep.chain.read(consumer.address, SIG_RANDOM_WORDS_OF, [rid, i], returns=["uint256"]) for i in range(n)]


def test_request_emits_payload(deployment):
    dep = deployment
    req = _request(dep, dep.consumer, num_words=3, confirmations=2)
    assert req.request_id == 1
    assert req.consumer == dep.consumer.address
    assert req.sender == dep.consumer.address
    assert (req.num_words, req.confirmations) == (3, 2)
    assert req.block_number == dep.chain.head.number
    assert _pending(dep, 1)
    assert dep.chain.read(dep.coordinator.address, SIG_LAST_REQUEST_ID, returns=["uint256"]) == 1
    assert dep.chain.read(dep.consumer.address, SIG_REQUEST_ID, returns=["uint256"]) == 1
    assert _request(dep, dep.consumer).request_id == 2


def test_zero_confirmations_reverts(deployment):
    dep = deployment
    rcpt = dep.chain.transact(dep.user, dep.consumer.address, SIG_REQUEST_RANDOM_WORDS, [1, 0])
    assert not rcpt.ok
    assert isinstance(rcpt.error, InvalidConfirmations)
    assert dep.chain.read(dep.coordinator.address, SIG_LAST_REQUEST_ID, returns=["uint256"]) == 0


@pytest.mark.parametrize("num_words", [0, 501])
def test_num_words_out_of_range_reverts(deployment, num_words):
    dep = deployment
    rcpt = dep.chain.transact(dep.user, dep.consumer.address, SIG_REQUEST_RANDOM_WORDS, [num_words, 1])
    assert not rcpt.ok
    assert "InvalidNumWords" in rcpt.error.reason


def test_fulfill_delivers_to_consumer(deployment):
    dep = deployment
    req = _request(dep, dep.consumer)
    rcpt = _fulfill(dep, WORDS, req.payload)
    rcpt.raise_for_status()

    assert not _pending(dep, req.request_id)
    assert _words_of(dep, dep.consumer, req.request_id, 3) == WORDS
    (done,) = [lg for lg in rcpt.logs if lg.topics[0] == event_topic("RandomWordsFulfilled(uint256)")]
    assert done.address == dep.coordinator.address
    assert int(done.topics[1], 16) == req.request_id


def test_only_fulfiller_may_fulfill(deployment):
    dep = deployment
    req = _request(dep, dep.consumer)
    rcpt = _fulfill(dep, WORDS, req.payload, sender=dep.user)
    assert isinstance(rcpt.error, UnauthorizedFulfiller)
    assert _pending(dep, req.request_id)
    assert dep.chain.read(dep.coordinator.address, SIG_FULFILLER, returns=["address"]) == dep.fulfiller


def test_fulfilled_is_terminal(deployment):
    dep = deployment
    req = _request(dep, dep.consumer)
    _fulfill(dep, WORDS, req.payload).raise_for_status()
    rcpt = _fulfill(dep, [1, 2, 3], req.payload)
    assert isinstance(rcpt.error, RequestNotPending)
    assert _words_of(dep, dep.consumer, req.request_id, 3) == WORDS


@pytest.mark.parametrize("confirmations", [1, 2, 65535])
def test_confirmation_depth_is_enforced(deployment, confirmations):
    dep = deployment
    req = _request(dep, dep.consumer, confirmations=confirmations)
    if confirmations > 1:
        # next block is req.block_number + 1, still too shallow
        rcpt = _fulfill(dep, WORDS, req.payload)
        assert isinstance(rcpt.error, InvalidFulfillment)
        dep.chain.mine(confirmations - 2)
    rcpt = _fulfill(dep, WORDS, req.payload)
    assert rcpt.ok, rcpt.error
    assert rcpt.block_number == req.block_number + confirmations


def test_word_count_must_match(deployment):
    dep = deployment
    req = _request(dep, dep.consumer, num_words=3)
    rcpt = _fulfill(dep, [1, 2], req.payload)
    assert isinstance(rcpt.error, InvalidFulfillment)
    assert _pending(dep, req.request_id)


def test_payload_must_match_recorded_request(deployment):
    dep = deployment
    req = _request(dep, dep.consumer)
    tampered = abi.encode(
        REQUEST_PAYLOAD_TYPES, [req.request_id, dep.other_consumer.address, req.num_words, req.confirmations, req.sender]
    )
    assert isinstance(_fulfill(dep, WORDS, tampered).error, InvalidFulfillment)
    assert isinstance(_fulfill(dep, WORDS, b"\x01\x02").error, InvalidFulfillment)
    assert _pending(dep, req.request_id)


def test_routing_to_another_consumer(deployment):
    dep = deployment
    rcpt = dep.chain.transact(
        dep.user, dep.consumer.address, SIG_REQUEST_FOR_CONSUMER, [2, dep.other_consumer.address], returns=["uint256"]
    )
    rcpt.raise_for_status()
    (rid,) = rcpt.output
    req = RandomnessRequest.from_log(rcpt.logs[0])
    assert req.consumer == dep.other_consumer.address
    assert req.sender == dep.consumer.address
    assert req.confirmations == 1

    _fulfill(dep, [5, 6], req.payload).raise_for_status()
    assert _words_of(dep, dep.other_consumer, rid, 2) == [5, 6]
    with pytest.raises(RpcFailure):
        dep.chain.read(dep.consumer.address, SIG_RANDOM_WORDS_OF, [rid, 0], returns=["uint256"])
    # the requester tracks the id, the recipient never made a request
    assert dep.chain.read(dep.consumer.address, SIG_REQUEST_ID, returns=["uint256"]) == rid
    assert dep.chain.read(dep.other_consumer.address, SIG_REQUEST_ID, returns=["uint256"]) == 0


def test_failed_delivery_rolls_back(deployment):
    dep = deployment
    eoa = LocalChain.account("not-a-contract")
    rcpt = dep.chain.transact(dep.user, dep.coordinator.address, SIG_REQUEST_FOR_CONSUMER, [1, eoa], returns=["uint256"])
    req = RandomnessRequest.from_log(rcpt.logs[0])
    assert req.sender == dep.user

    out = _fulfill(dep, [9], req.payload)
    assert not out.ok
    assert _pending(dep, req.request_id)
    assert dep.chain.get_logs(
        address=dep.coordinator.address,
        topics=[event_topic("RandomWordsFulfilled(uint256)")],
        from_block=0,
        to_block=dep.chain.head.number,
    ) == []


def test_consumer_accepts_coordinator_only(deployment):
    dep = deployment
    rcpt = dep.chain.transact(dep.user, dep.consumer.address, SIG_RAW_FULFILL, [1, [7]])
    assert not rcpt.ok
    assert isinstance(rcpt.error, Revert)
    assert "OnlyCoordinatorCanFulfill" in rcpt.error.reason


def test_random_words_index_out_of_bounds(deployment):
    dep = deployment
    req = _request(dep, dep.consumer, num_words=1)
    _fulfill(dep, [1], req.payload).raise_for_status()
    assert _words_of(dep, dep.consumer, req.request_id, 1) == [1]
    with pytest.raises(RpcFailure) as ei:
        dep.chain.read(dep.consumer.address, SIG_RANDOM_WORDS_OF, [req.request_id, 1], returns=["uint256"])
    assert "index out of bounds" in str(ei.value)
