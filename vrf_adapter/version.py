"""
Version helpers for the vrf_adapter package.

Resolution order:
1) importlib.metadata (if the package is installed),
2) a static fallback BASE_VERSION with a local ``+src`` tag.
"""
from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as _pkg_version

# Bump this when making intentional, source-level releases.
BASE_VERSION = "0.3.0"

_PKG_NAME = "vrf-adapter"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_PKG_NAME)
    except PackageNotFoundError:
        return f"{BASE_VERSION}+src"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION"]
