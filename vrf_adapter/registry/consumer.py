"""
Example consumer contract.

Asks the coordinator for words, remembers the id of its own latest request
and stores whatever the coordinator delivers, keyed by request id. Delivery
is accepted from the coordinator only.

Note that ``requestId()`` tracks requests *this* contract made. A consumer
that receives words routed to it by someone else's request never sees its
own counter move.
"""

from __future__ import annotations

from typing import Dict, List

from ..chain.local import Contract, external
from ..constants import (
    SIG_RANDOM_WORDS_OF,
    SIG_RAW_FULFILL,
    SIG_REQUEST_FOR_CONSUMER,
    SIG_REQUEST_ID,
    SIG_REQUEST_RANDOM_WORDS,
)
from ..errors import Revert
from ..utils.bytes import normalize_address


class MockVRFConsumer(Contract):
    def __init__(self, coordinator: str) -> None:
        super().__init__()
        self._coordinator = normalize_address(coordinator)
        self._request_id = 0
        self._words: Dict[int, List[int]] = {}

    @external(SIG_REQUEST_RANDOM_WORDS, returns=["uint256"])
    def requestRandomWords(self, num_words: int, confirmations: int) -> int:
        (rid,) = self.call_contract(
            self._coordinator, SIG_REQUEST_RANDOM_WORDS, [num_words, confirmations], returns=["uint256"]
        )
        self._request_id = rid
        return rid

    @external(SIG_REQUEST_FOR_CONSUMER, returns=["uint256"])
    def requestRandomWordsForConsumer(self, num_words: int, consumer: str) -> int:
        (rid,) = self.call_contract(
            self._coordinator, SIG_REQUEST_FOR_CONSUMER, [num_words, consumer], returns=["uint256"]
        )
        self._request_id = rid
        return rid

    @external(SIG_RAW_FULFILL)
    def rawFulfillRandomWords(self, request_id: int, words: List[int]) -> None:
        if self.msg_sender != self._coordinator:
            raise Revert(f"OnlyCoordinatorCanFulfill: {self.msg_sender}")
        self._words[request_id] = list(words)

    @external(SIG_RANDOM_WORDS_OF, returns=["uint256"])
    def randomWordsOf(self, request_id: int, index: int) -> int:
        words = self._words.get(request_id, [])
        if index >= len(words):
            raise Revert("index out of bounds")
        return words[index]

    @external(SIG_REQUEST_ID, returns=["uint256"])
    def requestId(self) -> int:
        return self._request_id


__all__ = ["MockVRFConsumer"]
