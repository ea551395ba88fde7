"""
vrf_adapter.chain.local
=======================

In-process development chain that hosts Python contracts.

It is deliberately small: one transaction per block, no gas, no value
transfers. What it does model faithfully is what the fulfillment pipeline
relies on:

- ``msg.sender`` per call frame (including contract-to-contract calls),
- ABI calldata dispatch by 4-byte selector,
- event logs with topics, block numbers and log indexes,
- all-or-nothing transactions: a :class:`~vrf_adapter.errors.Revert` anywhere
  in the call tree restores every contract's state and yields a failed
  receipt (the block is still mined),
- block timestamps advancing by a fixed ``block_time``.

It also implements the `ChainClient` protocol, so the scanner and engine can
run against it unchanged.

Example
-------
    chain = LocalChain(genesis_time=1_700_000_000)
    alice = LocalChain.account("alice")
    counter = chain.deploy(Counter(), sender=alice)
    rcpt = chain.transact(alice, counter.address, "inc(uint256)", [1])
    rcpt.raise_for_status()
"""

from __future__ import annotations

import copy
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple

from .. import abi
from ..errors import AbiError, Revert, RpcFailure
from ..types import Block, Log
from ..utils.bytes import ZERO_ADDRESS, normalize_address, to_hex
from ..utils.hash import event_topic, keccak256, selector

logger = logging.getLogger(__name__)

# Per-instance attributes owned by the host, never snapshotted.
_RUNTIME_ATTRS = frozenset({"address", "_frame", "_chain"})


# --------------------------------------------------------------------------- #
# Contract side                                                               #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class _Entry:
    signature: str
    returns: Tuple[str, ...]

    @property
    def arg_types(self) -> List[str]:
        return abi.parse_signature(self.signature)[1]


def external(signature: str, returns: Sequence[str] = ()) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Expose a contract method under a canonical ABI signature."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        fn.__abi__ = _Entry(signature, tuple(returns))  # type: ignore[attr-defined]
        return fn

    return deco


@dataclass
class _Frame:
    sender: str
    block: Block
    logs: List[Log]
    tx_hash: Optional[str]


class Contract:
    """
    Base class for contracts hosted by :class:`LocalChain`.

    Subclasses keep their state in plain instance attributes and mark entry
    points with :func:`external`. Inside an entry point, ``self.msg_sender``
    and ``self.block`` describe the current call frame.
    """

    _abi: ClassVar[Dict[bytes, Tuple[str, _Entry]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: Dict[bytes, Tuple[str, _Entry]] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                entry = getattr(attr, "__abi__", None)
                if isinstance(entry, _Entry):
                    table[selector(entry.signature)] = (name, entry)
        cls._abi = table

    def __init__(self) -> None:
        self.address: str = ZERO_ADDRESS
        self._chain: Optional["LocalChain"] = None
        self._frame: Optional[_Frame] = None

    # --- frame accessors -------------------------------------------------

    @property
    def msg_sender(self) -> str:
        return self._require_frame().sender

    @property
    def block(self) -> Block:
        return self._require_frame().block

    def _require_frame(self) -> _Frame:
        if self._frame is None:
            raise RuntimeError(f"{type(self).__name__} is not executing")
        return self._frame

    # --- effects ---------------------------------------------------------

    def emit(
        self,
        event_signature: str,
        types: Sequence[str] = (),
        values: Sequence[Any] = (),
        *,
        indexed: Sequence[Tuple[str, Any]] = (),
    ) -> None:
        """Append a log: topic0 is the event signature hash, *indexed* become topic1..3."""
        if len(indexed) > 3:
            raise ValueError("at most three indexed arguments")
        frame = self._require_frame()
        topics = (event_topic(event_signature),) + tuple(to_hex(abi.encode([t], [v])) for t, v in indexed)
        frame.logs.append(
            Log(
                address=self.address,
                topics=topics,
                data=abi.encode(list(types), list(values)),
                block_number=frame.block.number,
                log_index=len(frame.logs),
                transaction_hash=frame.tx_hash,
            )
        )

    def call_contract(
        self,
        to: str,
        signature: str,
        args: Sequence[Any] = (),
        returns: Sequence[str] = (),
    ) -> Tuple[Any, ...]:
        """Call another contract with ``msg.sender`` set to this contract; reverts bubble up."""
        frame = self._require_frame()
        assert self._chain is not None
        out = self._chain._execute(self.address, to, abi.encode_call(signature, args), frame)
        return abi.decode(list(returns), out) if returns else ()

    # --- dispatch --------------------------------------------------------

    def dispatch(self, data: bytes) -> bytes:
        found = self._abi.get(bytes(data[:4]))
        if found is None:
            raise Revert(f"unknown selector 0x{bytes(data[:4]).hex()}")
        name, entry = found
        try:
            args = abi.decode(entry.arg_types, data[4:])
        except AbiError as e:
            raise Revert(f"invalid calldata for {entry.signature}: {e}") from e
        result = getattr(self, name)(*args)
        if not entry.returns:
            return b""
        values = [result] if len(entry.returns) == 1 else list(result)
        return abi.encode(list(entry.returns), values)


# --------------------------------------------------------------------------- #
# Receipts                                                                    #
# --------------------------------------------------------------------------- #


@dataclass
class Receipt:
    status: bool
    block_number: int
    transaction_hash: str
    logs: List[Log] = field(default_factory=list)
    return_data: bytes = b""
    output: Tuple[Any, ...] = ()
    error: Optional[Revert] = None

    @property
    def ok(self) -> bool:
        return self.status

    def raise_for_status(self) -> "Receipt":
        if self.error is not None:
            raise self.error
        return self


# --------------------------------------------------------------------------- #
# Chain                                                                       #
# --------------------------------------------------------------------------- #


def _block_hash(number: int, timestamp: int, parent: Optional[str]) -> str:
    return to_hex(keccak256(number.to_bytes(8, "big") + timestamp.to_bytes(8, "big") + bytes.fromhex((parent or "0x")[2:])))


class LocalChain:
    """
    Args:
        genesis_time: timestamp of block 0 (defaults to now).
        block_time: seconds between consecutive blocks.
    """

    def __init__(self, *, genesis_time: Optional[int] = None, block_time: int = 2) -> None:
        if block_time <= 0:
            raise ValueError("block_time must be positive")
        ts = int(time.time()) if genesis_time is None else int(genesis_time)
        self.block_time = block_time
        self._blocks: List[Block] = [Block(number=0, timestamp=ts, hash=_block_hash(0, ts, None))]
        self._logs: List[Log] = []
        self._contracts: Dict[str, Contract] = {}
        self._nonces: Dict[str, int] = defaultdict(int)
        self._time_skew = 0

    # --- accounts & deployment ------------------------------------------

    @staticmethod
    def account(label: str) -> str:
        """Deterministic dev account address for a human-readable label."""
        return to_hex(keccak256(b"account:" + label.encode("utf-8"))[-20:])

    def deploy(self, contract: Contract, *, sender: str) -> Contract:
        sender = normalize_address(sender)
        nonce = self._nonces[sender]
        self._nonces[sender] += 1
        contract.address = to_hex(keccak256(bytes.fromhex(sender[2:]) + nonce.to_bytes(8, "big"))[-20:])
        contract._chain = self
        self._contracts[contract.address] = contract
        self.mine()
        logger.debug("contract deployed", extra={"contract": type(contract).__name__, "address": contract.address})
        return contract

    def contract(self, address: str) -> Contract:
        try:
            return self._contracts[normalize_address(address)]
        except KeyError:
            raise KeyError(f"no contract at {address}") from None

    # --- blocks ----------------------------------------------------------

    @property
    def head(self) -> Block:
        return self._blocks[-1]

    def mine(self, n: int = 1) -> Block:
        for _ in range(n):
            self._append(self._next_block())
        return self.head

    def advance_time(self, seconds: int) -> None:
        """Shift the timestamp of every future block by *seconds*."""
        if seconds < 0:
            raise ValueError("time only moves forward")
        self._time_skew += seconds

    def _next_block(self) -> Block:
        parent = self.head
        number = parent.number + 1
        ts = parent.timestamp + self.block_time + self._time_skew
        return Block(number=number, timestamp=ts, hash=_block_hash(number, ts, parent.hash))

    def _append(self, block: Block) -> None:
        self._blocks.append(block)
        self._time_skew = 0

    # --- transactions ----------------------------------------------------

    def send_transaction(self, sender: str, to: str, data: bytes) -> Receipt:
        """Execute *data* against *to* in a new block and return its receipt."""
        sender = normalize_address(sender)
        to = normalize_address(to)
        nonce = self._nonces[sender]
        self._nonces[sender] += 1
        tx_hash = to_hex(keccak256(bytes.fromhex(sender[2:]) + nonce.to_bytes(8, "big") + bytes(data)))
        block = self._next_block()
        frame = _Frame(sender=sender, block=block, logs=[], tx_hash=tx_hash)

        snap = self._snapshot()
        try:
            out = self._execute(sender, to, bytes(data), frame)
        except Revert as e:
            self._restore(snap)
            self._append(block)
            logger.info("transaction reverted", extra={"to": to, "block": block.number, "reason": e.reason})
            return Receipt(status=False, block_number=block.number, transaction_hash=tx_hash, error=e)
        except Exception:
            self._restore(snap)
            raise

        self._append(block)
        self._logs.extend(frame.logs)
        return Receipt(
            status=True,
            block_number=block.number,
            transaction_hash=tx_hash,
            logs=list(frame.logs),
            return_data=out,
        )

    def transact(
        self,
        sender: str,
        to: str,
        signature: str,
        args: Sequence[Any] = (),
        returns: Sequence[str] = (),
    ) -> Receipt:
        """Encode, send and (on success) decode the return values into ``receipt.output``."""
        rcpt = self.send_transaction(sender, to, abi.encode_call(signature, args))
        if rcpt.ok and returns:
            rcpt.output = abi.decode(list(returns), rcpt.return_data)
        return rcpt

    def read(self, to: str, signature: str, args: Sequence[Any] = (), returns: Sequence[str] = ()) -> Any:
        """View call helper; a single return value is unwrapped."""
        out = abi.decode(list(returns), self.call(to, abi.encode_call(signature, args)))
        return out[0] if len(out) == 1 else out

    def _execute(self, sender: str, to: str, data: bytes, parent: _Frame) -> bytes:
        to = normalize_address(to)
        target = self._contracts.get(to)
        if target is None:
            raise Revert(f"call to non-contract {to}")
        saved = target._frame
        target._frame = _Frame(sender=sender, block=parent.block, logs=parent.logs, tx_hash=parent.tx_hash)
        try:
            return target.dispatch(data)
        finally:
            target._frame = saved

    def _snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {
            addr: copy.deepcopy({k: v for k, v in vars(c).items() if k not in _RUNTIME_ATTRS})
            for addr, c in self._contracts.items()
        }

    def _restore(self, snap: Dict[str, Dict[str, Any]]) -> None:
        for addr, state in snap.items():
            vars(self._contracts[addr]).update(state)

    # --- ChainClient -----------------------------------------------------

    def block_number(self) -> int:
        return self.head.number

    def get_block(self, number: int) -> Block:
        if not 0 <= number < len(self._blocks):
            raise RpcFailure("eth_getBlockByNumber", f"block {number} not found")
        return self._blocks[number]

    def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[Optional[str]],
        from_block: int,
        to_block: int,
    ) -> List[Log]:
        address = normalize_address(address)
        wanted = [t.lower() if t is not None else None for t in topics]
        out = []
        for lg in self._logs:
            if lg.address != address or not from_block <= lg.block_number <= to_block:
                continue
            if any(t is not None and (i >= len(lg.topics) or lg.topics[i] != t) for i, t in enumerate(wanted)):
                continue
            out.append(lg)
        return out

    def call(self, to: str, data: bytes) -> bytes:
        to = normalize_address(to)
        if to not in self._contracts:
            return b""
        frame = _Frame(sender=ZERO_ADDRESS, block=self.head, logs=[], tx_hash=None)
        snap = self._snapshot()
        try:
            return self._execute(ZERO_ADDRESS, to, bytes(data), frame)
        except Revert as e:
            raise RpcFailure("eth_call", f"execution reverted: {e.reason}", code=3) from e
        finally:
            self._restore(snap)


__all__ = ["Contract", "LocalChain", "Receipt", "external"]
