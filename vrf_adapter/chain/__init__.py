"""
vrf_adapter.chain
=================

Chain access used by the scanner and engine. Higher layers depend only on the
small `ChainClient` protocol below:

- `JsonRpcChain` (``chain.rpc``) talks Ethereum JSON-RPC over HTTP.
- `LocalChain`   (``chain.local``) is an in-process dev chain that executes the
  registry contracts, used by tests and local demos.

All methods raise :class:`~vrf_adapter.errors.RpcFailure` on failure.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from ..types import Block, Log


class ChainClient(Protocol):
    def block_number(self) -> int:
        """Current chain head."""
        ...

    def get_block(self, number: int) -> Block:
        ...

    def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[Optional[str]],
        from_block: int,
        to_block: int,
    ) -> List[Log]:
        """Logs emitted by *address* matching *topics* in the inclusive range."""
        ...

    def call(self, to: str, data: bytes) -> bytes:
        """Read-only contract call at the head block."""
        ...


__all__ = ["ChainClient"]
