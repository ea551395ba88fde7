"""
Verifiable randomness adapter.

Delivers drand beacon randomness to on-chain consumers through a
request/fulfill registry:
- beacon:   fetch + BLS-verify drand beacons,
- derive:   expand one beacon into per-request words,
- scanner:  cursor-bounded registry log scanning,
- engine:   build one fulfillment call per eligible request,
- registry: the request/fulfill contracts (run on the local dev chain).

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
