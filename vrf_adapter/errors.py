"""
VRF adapter errors.

A small, typed hierarchy of exceptions raised by the fulfillment pipeline
(scan → beacon fetch/verify → derive → deliver) and by the registry contracts
running on a chain host. Callers can catch the base `VRFError` to handle all
adapter errors, or the concrete subclasses for more granular control.

Engine-side failures (`RpcFailure`, `BeaconUnavailable`,
`BeaconVerificationFailed`) are *retryable*: the next bounded invocation
repeats the same work. Registry-side failures derive from `Revert` and are
fatal to the single transaction that raised them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class VRFError(Exception):
    """Base class for all VRF adapter errors."""

    retryable: bool = False


class ConfigError(VRFError, ValueError):
    """Invalid or incomplete configuration input."""


class AbiError(VRFError, ValueError):
    """Malformed ABI payload or value out of range for its declared type."""


# ---------------------------------------------------------------------------
# Engine-side (retryable)
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class RpcFailure(VRFError):
    """
    Raised when a chain query fails (transport error, JSON-RPC error object,
    malformed response).

    Attributes:
        method: JSON-RPC method (or logical operation) that failed.
        reason: Human-readable explanation.
        code: Optional JSON-RPC error code.
    """

    method: str
    reason: str
    code: Optional[int] = None

    retryable = True

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        base = f"RpcFailure: {self.method}: {self.reason}"
        return f"{base} (code={self.code})" if self.code is not None else base


@dataclass(eq=False)
class BeaconUnavailable(VRFError):
    """
    Raised when no beacon could be fetched: every node failed at the network
    level, or the requested round has not been published yet.
    """

    round: Optional[int]
    reason: str

    retryable = True

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        which = "latest" if self.round is None else f"round={self.round}"
        return f"BeaconUnavailable: {which}: {self.reason}"


@dataclass(eq=False)
class BeaconVerificationFailed(VRFError):
    """
    Raised when a beacon (or the node serving it) fails verification against
    the pinned chain parameters.

    Attributes:
        round: The beacon round (None for chain-info mismatches).
        reason: e.g. 'bad-signature', 'randomness-mismatch', 'chain-hash-mismatch'.
    """

    round: Optional[int]
    reason: str

    retryable = True

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        which = "chain-info" if self.round is None else f"round={self.round}"
        return f"BeaconVerificationFailed: {which}: {self.reason}"


# ---------------------------------------------------------------------------
# Registry-side (on-chain reverts)
# ---------------------------------------------------------------------------


class Revert(VRFError):
    """An on-chain call reverted; all state changes of the transaction are discarded."""

    def __init__(self, reason: str = "reverted") -> None:
        super().__init__(reason)
        self.reason = reason


class UnauthorizedFulfiller(Revert):
    def __init__(self, caller: str) -> None:
        super().__init__(f"UnauthorizedFulfiller: {caller}")
        self.caller = caller


class InvalidConfirmations(Revert):
    def __init__(self, confirmations: int) -> None:
        super().__init__(f"InvalidConfirmations: {confirmations}")
        self.confirmations = confirmations


class RequestNotPending(Revert):
    def __init__(self, request_id: int) -> None:
        super().__init__(f"RequestNotPending: {request_id}")
        self.request_id = request_id


class InvalidFulfillment(Revert):
    """Payload, word count or confirmation depth does not match the recorded request."""


__all__ = [
    "VRFError",
    "ConfigError",
    "AbiError",
    "RpcFailure",
    "BeaconUnavailable",
    "BeaconVerificationFailed",
    "Revert",
    "UnauthorizedFulfiller",
    "InvalidConfirmations",
    "RequestNotPending",
    "InvalidFulfillment",
]
