"""
vrf_adapter.utils
-----------------

Light helpers shared across the adapter: hex/bytes conversion, address
normalization and Keccak-256 hashing.

This package file deliberately avoids eager imports.
"""

__all__: list[str] = []
