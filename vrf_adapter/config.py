"""
VRF adapter configuration.

Typed configuration objects and helpers for:
- The registry to watch and the senders to serve (allow-list)
- Scanner bounds (range width, iteration budget, first-run lookback)
- The drand network and its pinned verification parameters
- The JSON-RPC endpoint and the cursor store location

Provides:
- Dataclass-based configs with validation (raising ConfigError)
- Loading from environment variables (prefix configurable, default ``VRF_``)
- Loading from a JSON or YAML file
- Conversion from the loosely-typed user-args mapping automation runtimes pass
  to a function (``allowedSenders``, ``inbox``, ``proxyAddress``, ...)
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import urlparse

import yaml

from .beacon.chain_info import NETWORKS, ChainInfo
from .constants import DEFAULT_DRAND_URLS, DEFAULT_ROUND_DELAY, LOOKBACK_BLOCKS, MAX_RANGE, MAX_REQUESTS
from .errors import ConfigError
from .utils.bytes import normalize_address

# -------------------------
# Sub-configs
# -------------------------


@dataclass
class BeaconConfig:
    """
    drand access.

    network: one of the built-in chain infos (mainnet, fastnet, quicknet)
    urls: relay base URLs, tried in order
    timeout_s: per-request HTTP timeout
    cache_size: verified beacons kept in memory
    chain_hash / public_key: optional overrides of the pinned verification
        parameters; both must be given together
    """

    network: str = "quicknet"
    urls: Tuple[str, ...] = DEFAULT_DRAND_URLS
    timeout_s: float = 5.0
    cache_size: int = 256
    chain_hash: Optional[str] = None
    public_key: Optional[str] = None

    def validate(self) -> None:
        if self.network not in NETWORKS:
            raise ConfigError(f"unknown drand network {self.network!r} (expected one of {sorted(NETWORKS)})")
        if not self.urls:
            raise ConfigError("at least one drand URL is required")
        for u in self.urls:
            if urlparse(u).scheme not in {"http", "https"}:
                raise ConfigError(f"drand URL must be http(s): {u!r}")
        if self.timeout_s <= 0:
            raise ConfigError("timeout_s must be > 0")
        if self.cache_size < 0:
            raise ConfigError("cache_size must be >= 0")
        if (self.chain_hash is None) != (self.public_key is None):
            raise ConfigError("chain_hash and public_key overrides must be given together")
        if self.chain_hash is not None:
            try:
                self.chain_info()
            except ValueError as e:
                raise ConfigError(f"invalid pinned chain parameters: {e}") from e

    def chain_info(self) -> ChainInfo:
        base = NETWORKS[self.network]
        if self.chain_hash is None or self.public_key is None:
            return base
        return ChainInfo(
            hash=self.chain_hash.lower().removeprefix("0x"),
            public_key=self.public_key.lower().removeprefix("0x"),
            period=base.period,
            genesis_time=base.genesis_time,
            scheme=base.scheme,
        )


@dataclass
class RpcConfig:
    url: str = "http://127.0.0.1:8545"
    timeout_s: float = 30.0
    max_retries: int = 3

    def validate(self) -> None:
        if urlparse(self.url).scheme not in {"http", "https"}:
            raise ConfigError(f"rpc url must be http(s): {self.url!r}")
        if self.timeout_s <= 0:
            raise ConfigError("timeout_s must be > 0")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class EngineConfig:
    """
    registry_address: registry whose RandomnessRequested events are served
    proxy_address: alternatively, a proxy whose ``implementation()`` is the
        registry (resolved by the engine on each run)
    allowed_senders: requesters served by this engine instance
    from_block: start block used when no cursor is stored (else head - lookback)

    Scanner: max_range (blocks per eth_getLogs), max_requests (ranges per
    invocation), lookback_blocks (first-run window).

    round_delay: drand rounds added to the round at the request's block time (default 0)
    skip_fulfilled: ask the registry (isPending) before building a call
    """

    registry_address: Optional[str] = None
    proxy_address: Optional[str] = None
    allowed_senders: Tuple[str, ...] = ()
    from_block: Optional[int] = None

    max_range: int = MAX_RANGE
    max_requests: int = MAX_REQUESTS
    lookback_blocks: int = LOOKBACK_BLOCKS

    round_delay: int = DEFAULT_ROUND_DELAY
    skip_fulfilled: bool = True

    cursor_uri: str = "sqlite:///./data/vrf/cursor.db"

    beacon: BeaconConfig = field(default_factory=BeaconConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)

    def __post_init__(self) -> None:
        self.allowed_senders = tuple(self.allowed_senders)
        self.beacon.urls = tuple(self.beacon.urls)

    def validate(self) -> "EngineConfig":
        """Validate and normalize addresses in place; returns self for chaining."""
        if (self.registry_address is None) == (self.proxy_address is None):
            raise ConfigError("exactly one of registry_address / proxy_address is required")
        self.registry_address = _addr("registry_address", self.registry_address)
        self.proxy_address = _addr("proxy_address", self.proxy_address)
        self.allowed_senders = tuple(_addr("allowed_senders", a) for a in self.allowed_senders)  # type: ignore[misc]
        if self.from_block is not None and self.from_block < 0:
            raise ConfigError("from_block must be >= 0")
        if self.max_range <= 0:
            raise ConfigError("max_range must be > 0")
        if self.max_requests <= 0:
            raise ConfigError("max_requests must be > 0")
        if self.lookback_blocks < 0:
            raise ConfigError("lookback_blocks must be >= 0")
        if self.round_delay < 0:
            raise ConfigError("round_delay must be >= 0")
        if not self.cursor_uri:
            raise ConfigError("cursor_uri must not be empty")
        self.beacon.validate()
        self.rpc.validate()
        return self

    def is_allowed(self, sender: str) -> bool:
        return normalize_address(sender) in self.allowed_senders

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["allowed_senders"] = list(self.allowed_senders)
        d["beacon"]["urls"] = list(self.beacon.urls)
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "VRF_") -> "EngineConfig":
        """
        Load configuration from environment variables. Only the registry (or
        proxy) address is mandatory.

        Supported keys (examples):
          - VRF_REGISTRY_ADDRESS=0x…      (or VRF_PROXY_ADDRESS=0x…)
          - VRF_ALLOWED_SENDERS=0xabc…,0xdef…
          - VRF_FROM_BLOCK=18000000
          - VRF_MAX_RANGE=100
          - VRF_MAX_REQUESTS=100
          - VRF_LOOKBACK_BLOCKS=2000
          - VRF_ROUND_DELAY=1
          - VRF_SKIP_FULFILLED=true
          - VRF_CURSOR_URI=sqlite:///./data/vrf/cursor.db

          - VRF_DRAND_NETWORK=quicknet
          - VRF_DRAND_URLS=https://api.drand.sh,https://drand.cloudflare.com
          - VRF_DRAND_TIMEOUT_S=5
          - VRF_DRAND_CACHE_SIZE=256
          - VRF_DRAND_CHAIN_HASH=…       (with VRF_DRAND_PUBLIC_KEY)

          - VRF_RPC_URL=http://127.0.0.1:8545
          - VRF_RPC_TIMEOUT_S=30
          - VRF_RPC_MAX_RETRIES=3
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            try:
                if cast is bool:
                    return raw.lower() in {"1", "true", "yes", "on"}
                return cast(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {key}: {raw!r}") from e

        cfg = EngineConfig(
            registry_address=_get("REGISTRY_ADDRESS", str, None),
            proxy_address=_get("PROXY_ADDRESS", str, None),
            allowed_senders=_get("ALLOWED_SENDERS", _split_csv, ()),
            from_block=_get("FROM_BLOCK", int, None),
            max_range=_get("MAX_RANGE", int, MAX_RANGE),
            max_requests=_get("MAX_REQUESTS", int, MAX_REQUESTS),
            lookback_blocks=_get("LOOKBACK_BLOCKS", int, LOOKBACK_BLOCKS),
            round_delay=_get("ROUND_DELAY", int, DEFAULT_ROUND_DELAY),
            skip_fulfilled=_get("SKIP_FULFILLED", bool, True),
            cursor_uri=_get("CURSOR_URI", str, "sqlite:///./data/vrf/cursor.db"),
            beacon=BeaconConfig(
                network=_get("DRAND_NETWORK", str, "quicknet"),
                urls=_get("DRAND_URLS", _split_csv, DEFAULT_DRAND_URLS),
                timeout_s=_get("DRAND_TIMEOUT_S", float, 5.0),
                cache_size=_get("DRAND_CACHE_SIZE", int, 256),
                chain_hash=_get("DRAND_CHAIN_HASH", str, None),
                public_key=_get("DRAND_PUBLIC_KEY", str, None),
            ),
            rpc=RpcConfig(
                url=_get("RPC_URL", str, "http://127.0.0.1:8545"),
                timeout_s=_get("RPC_TIMEOUT_S", float, 30.0),
                max_retries=_get("RPC_MAX_RETRIES", int, 3),
            ),
        )
        return cfg.validate()

    @staticmethod
    def from_file(path: str) -> "EngineConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        structure. Example (YAML):

            registry_address: "0x5FbDB2315678afecb367f032d93F642f64180aa3"
            allowed_senders:
              - "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
            round_delay: 1
            beacon:
              network: quicknet
              timeout_s: 5
            rpc:
              url: "http://127.0.0.1:8545"
        """
        return EngineConfig.from_dict(load_mapping(path))

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EngineConfig":
        data = dict(data)
        beacon_d = dict(data.pop("beacon", None) or {})
        rpc_d = dict(data.pop("rpc", None) or {})
        try:
            cfg = EngineConfig(beacon=BeaconConfig(**beacon_d), rpc=RpcConfig(**rpc_d), **data)
        except TypeError as e:
            raise ConfigError(f"unknown configuration key: {e}") from e
        return cfg.validate()

    @staticmethod
    def from_user_args(args: Mapping[str, Any], base: Optional["EngineConfig"] = None) -> "EngineConfig":
        """
        Build a config from automation user args layered over *base*.

        Recognized keys: ``allowedSenders`` (list) or ``consumerAddress``
        (single sender), ``inbox`` (registry) or ``proxyAddress``, and
        ``fromBlock``. Unknown keys are rejected.
        """
        known = {"allowedSenders", "consumerAddress", "inbox", "proxyAddress", "fromBlock"}
        unknown = set(args) - known
        if unknown:
            raise ConfigError(f"unknown user args: {sorted(unknown)}")

        cfg = EngineConfig(**_shallow_fields(base)) if base is not None else EngineConfig()
        if "allowedSenders" in args:
            senders = args["allowedSenders"]
            if isinstance(senders, str) or not isinstance(senders, Iterable):
                raise ConfigError("allowedSenders must be a list of addresses")
            cfg.allowed_senders = tuple(senders)
        if args.get("consumerAddress"):
            cfg.allowed_senders = tuple(cfg.allowed_senders) + (str(args["consumerAddress"]),)
        if args.get("inbox"):
            cfg.registry_address, cfg.proxy_address = str(args["inbox"]), None
        if args.get("proxyAddress"):
            cfg.registry_address, cfg.proxy_address = None, str(args["proxyAddress"])
        if args.get("fromBlock") is not None:
            try:
                cfg.from_block = int(args["fromBlock"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"fromBlock must be an integer: {args['fromBlock']!r}") from e
        return cfg.validate()


# -------------------------
# Utilities
# -------------------------


def _addr(name: str, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_address(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name}: {e}") from e


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _shallow_fields(cfg: EngineConfig) -> Dict[str, Any]:
    return {f: getattr(cfg, f) for f in cfg.__dataclass_fields__}


def load_mapping(path: str) -> Dict[str, Any]:
    """Parse a JSON or YAML config file into a plain mapping (no validation)."""
    return _parse_json_or_yaml(_read_text(path), path)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_json_or_yaml(text: str, path_hint: str) -> Dict[str, Any]:
    if path_hint.endswith((".yaml", ".yml")):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"{path_hint}: invalid YAML: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ConfigError(f"{path_hint}: neither valid JSON nor YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path_hint}: top-level config must be a mapping")
    return data


__all__ = ["BeaconConfig", "RpcConfig", "EngineConfig", "load_mapping"]
