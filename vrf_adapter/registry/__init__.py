"""
vrf_adapter.registry
====================

Registry contracts executed by :class:`~vrf_adapter.chain.local.LocalChain`:

- `VRFCoordinatorAdapter` — request/fulfill state machine with a single
  authorized fulfiller and consumer routing.
- `MockVRFConsumer` — example consumer that requests words and stores the
  delivered values.
"""

from __future__ import annotations

from .consumer import MockVRFConsumer
from .coordinator import VRFCoordinatorAdapter

__all__ = ["MockVRFConsumer", "VRFCoordinatorAdapter"]
