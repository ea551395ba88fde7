"""
vrf_adapter.registry.coordinator
================================

Request registry exposing a VRF-coordinator style interface to consumers.

Lifecycle of a request::

    requestRandomWords / requestRandomWordsForConsumer
        → Pending(id)      emits RandomnessRequested(bytes payload)
    fulfillRandomness(values, payload)     [fulfiller only]
        → Fulfilled(id)    calls consumer.rawFulfillRandomWords(id, values)
                           emits RandomWordsFulfilled(id)

Fulfilled is terminal. The payload announced in the event is the request
context the fulfiller must echo back verbatim:

    abi.encode(uint256 id, address consumer, uint32 numWords,
               uint16 confirmations, address sender)

``consumer`` is where values go; ``sender`` is the contract that asked. They
differ for requests made via ``requestRandomWordsForConsumer``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .. import abi
from ..chain.local import Contract, external
from ..constants import (
    DEFAULT_CONFIRMATIONS,
    EVENT_RANDOM_WORDS_FULFILLED,
    EVENT_RANDOMNESS_REQUESTED,
    MAX_NUM_WORDS,
    REQUEST_PAYLOAD_TYPES,
    SIG_FULFILL_RANDOMNESS,
    SIG_FULFILLER,
    SIG_IS_PENDING,
    SIG_LAST_REQUEST_ID,
    SIG_RAW_FULFILL,
    SIG_REQUEST_FOR_CONSUMER,
    SIG_REQUEST_RANDOM_WORDS,
)
from ..errors import AbiError, InvalidConfirmations, InvalidFulfillment, RequestNotPending, Revert, UnauthorizedFulfiller
from ..utils.bytes import normalize_address


@dataclass
class _Pending:
    payload: bytes
    consumer: str
    num_words: int
    confirmations: int
    block_number: int


class VRFCoordinatorAdapter(Contract):
    """
    Args:
        fulfiller: the only address allowed to call ``fulfillRandomness``.
            Fixed at deployment.
    """

    def __init__(self, fulfiller: str) -> None:
        super().__init__()
        self._fulfiller = normalize_address(fulfiller)
        self._last_request_id = 0
        self._pending: Dict[int, _Pending] = {}

    # ----- requests ---------------------------------------------------------

    @external(SIG_REQUEST_RANDOM_WORDS, returns=["uint256"])
    def requestRandomWords(self, num_words: int, confirmations: int) -> int:
        if confirmations == 0:
            raise InvalidConfirmations(confirmations)
        return self._request(num_words, confirmations, consumer=self.msg_sender)

    @external(SIG_REQUEST_FOR_CONSUMER, returns=["uint256"])
    def requestRandomWordsForConsumer(self, num_words: int, consumer: str) -> int:
        return self._request(num_words, DEFAULT_CONFIRMATIONS, consumer=consumer)

    def _request(self, num_words: int, confirmations: int, *, consumer: str) -> int:
        if not 1 <= num_words <= MAX_NUM_WORDS:
            raise Revert(f"InvalidNumWords: {num_words}")
        self._last_request_id += 1
        request_id = self._last_request_id
        sender = self.msg_sender
        payload = abi.encode(REQUEST_PAYLOAD_TYPES, [request_id, consumer, num_words, confirmations, sender])
        self._pending[request_id] = _Pending(
            payload=payload,
            consumer=normalize_address(consumer),
            num_words=num_words,
            confirmations=confirmations,
            block_number=self.block.number,
        )
        self.emit(EVENT_RANDOMNESS_REQUESTED, ["bytes"], [payload])
        return request_id

    # ----- fulfillment ------------------------------------------------------

    @external(SIG_FULFILL_RANDOMNESS)
    def fulfillRandomness(self, values: List[int], data: bytes) -> None:
        if self.msg_sender != self._fulfiller:
            raise UnauthorizedFulfiller(self.msg_sender)
        try:
            request_id = abi.decode(REQUEST_PAYLOAD_TYPES, data)[0]
        except AbiError as e:
            raise InvalidFulfillment(f"malformed request data: {e}") from e

        req = self._pending.get(request_id)
        if req is None:
            raise RequestNotPending(request_id)
        if req.payload != bytes(data):
            raise InvalidFulfillment("request data does not match the recorded request")
        if len(values) != req.num_words:
            raise InvalidFulfillment(f"expected {req.num_words} words, got {len(values)}")
        if self.block.number < req.block_number + req.confirmations:
            raise InvalidFulfillment("not enough confirmations")

        del self._pending[request_id]
        self.call_contract(req.consumer, SIG_RAW_FULFILL, [request_id, list(values)])
        self.emit(EVENT_RANDOM_WORDS_FULFILLED, indexed=[("uint256", request_id)])

    # ----- views ------------------------------------------------------------

    @external(SIG_IS_PENDING, returns=["bool"])
    def isPending(self, request_id: int) -> bool:
        return request_id in self._pending

    @external(SIG_FULFILLER, returns=["address"])
    def fulfiller(self) -> str:
        return self._fulfiller

    @external(SIG_LAST_REQUEST_ID, returns=["uint256"])
    def lastRequestId(self) -> int:
        return self._last_request_id


__all__ = ["VRFCoordinatorAdapter"]
