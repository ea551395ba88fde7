"""
vrf_adapter.cli
---------------

Command line entry points for the VRF adapter.

Commands:
  - run      : One engine invocation against a JSON-RPC endpoint; the cursor
               lives in a local store. Prints ``{canExec, callData, message}``.
  - beacon   : Fetch and verify a drand beacon (by round, timestamp or latest).
  - derive   : Compute the seed and words for (randomness, requestId, numWords).
  - round-at : Map a UNIX timestamp to a drand round.

Environment:
  Every ``run`` option can also be set via the matching ``VRF_*`` variable
  (e.g. VRF_RPC_URL, VRF_REGISTRY_ADDRESS, VRF_ALLOWED_SENDERS).

Example:
  vrf-adapter run --registry 0x5FbD… --allowed-sender 0xe7f1… --rpc http://127.0.0.1:8545
  vrf-adapter beacon --network quicknet --round 1000
  python -m vrf_adapter.cli derive --randomness 0x… --request-id 7 --num-words 3
"""

from __future__ import annotations

import json
import sys
import time
from contextlib import closing
from typing import Any, Dict, List, NoReturn, Optional, Sequence

import typer

from .. import logging as vlog
from ..beacon import DrandClient, network
from ..chain.rpc import JsonRpcChain
from ..config import EngineConfig, load_mapping
from ..derive import derive_seed, derive_word
from ..engine import FulfillmentEngine, run_with_store
from ..errors import VRFError
from ..store import open_store
from ..utils.bytes import from_hex, to_hex

__all__ = ["app", "main"]

app = typer.Typer(
    name="vrf-adapter",
    help="Verifiable randomness adapter: drand beacons → on-chain VRF requests.",
    no_args_is_help=True,
    add_completion=False,
)


def _emit(obj: Dict[str, Any]) -> None:
    typer.echo(json.dumps(obj, indent=2, sort_keys=False))


def _fail(msg: str) -> NoReturn:
    typer.echo(f"error: {msg}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def _main(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="VRF_LOG_LEVEL", help="Logging level."),
    json_logs: Optional[bool] = typer.Option(None, "--json-logs/--text-logs", help="Force JSON or text log lines."),
) -> None:
    vlog.configure(json=json_logs, level=log_level)


# -----------------------
# run
# -----------------------


def _engine_config(
    config_path: Optional[str],
    registry: Optional[str],
    proxy: Optional[str],
    senders: Sequence[str],
    rpc: Optional[str],
    cursor: Optional[str],
    drand_network: Optional[str],
    from_block: Optional[int],
) -> EngineConfig:
    data: Dict[str, Any] = load_mapping(config_path) if config_path else {}
    if registry:
        data["registry_address"], data["proxy_address"] = registry, None
    if proxy:
        data["registry_address"], data["proxy_address"] = None, proxy
    if senders:
        data["allowed_senders"] = [s.strip() for chunk in senders for s in chunk.split(",") if s.strip()]
    if cursor:
        data["cursor_uri"] = cursor
    if from_block is not None:
        data["from_block"] = from_block
    if rpc:
        data.setdefault("rpc", {})["url"] = rpc
    if drand_network:
        data.setdefault("beacon", {})["network"] = drand_network
    return EngineConfig.from_dict(data)


@app.command("run")
def cmd_run(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
    registry: Optional[str] = typer.Option(None, "--registry", envvar="VRF_REGISTRY_ADDRESS", help="Registry address."),
    proxy: Optional[str] = typer.Option(None, "--proxy", envvar="VRF_PROXY_ADDRESS", help="Proxy in front of the registry."),
    senders: List[str] = typer.Option(
        [], "--allowed-sender", "-s", envvar="VRF_ALLOWED_SENDERS", help="Requester to serve (repeatable or comma-separated)."
    ),
    rpc: Optional[str] = typer.Option(None, "--rpc", envvar="VRF_RPC_URL", help="JSON-RPC endpoint."),
    cursor: Optional[str] = typer.Option(None, "--cursor", envvar="VRF_CURSOR_URI", help="Cursor store URI."),
    drand_network: Optional[str] = typer.Option(None, "--network", envvar="VRF_DRAND_NETWORK", help="drand network."),
    from_block: Optional[int] = typer.Option(None, "--from-block", envvar="VRF_FROM_BLOCK", help="Start block when no cursor exists."),
) -> None:
    """Scan for new requests once and print the calls to submit."""
    try:
        cfg = _engine_config(config_path, registry, proxy, senders, rpc, cursor, drand_network, from_block)
    except (VRFError, OSError) as e:
        _fail(str(e))

    chain = JsonRpcChain(cfg.rpc.url, timeout=cfg.rpc.timeout_s, max_retries=cfg.rpc.max_retries)
    beacon = DrandClient(
        cfg.beacon.chain_info(), cfg.beacon.urls, timeout=cfg.beacon.timeout_s, cache_size=cfg.beacon.cache_size
    )
    try:
        with chain, beacon, closing(open_store(cfg.cursor_uri)) as store:
            result = run_with_store(FulfillmentEngine(cfg, chain, beacon), store)
    except VRFError as e:
        _fail(str(e))
    _emit(result.to_dict())


# -----------------------
# beacon / derive / round-at
# -----------------------


@app.command("beacon")
def cmd_beacon(
    drand_network: str = typer.Option("quicknet", "--network", "-n", help="mainnet | fastnet | quicknet"),
    round_id: Optional[int] = typer.Option(None, "--round", "-r", min=1, help="Round (omit for latest)."),
    at: Optional[float] = typer.Option(None, "--time", "-t", help="UNIX timestamp; fetches the round at that time."),
    urls: List[str] = typer.Option([], "--url", help="drand relay base URL (repeatable)."),
    timeout: float = typer.Option(5.0, "--timeout", help="HTTP timeout in seconds."),
) -> None:
    """Fetch a beacon and verify it against the pinned network parameters."""
    if round_id is not None and at is not None:
        _fail("use either --round or --time, not both")
    try:
        info = network(drand_network)
        kwargs: Dict[str, Any] = {"timeout": timeout}
        if urls:
            kwargs["urls"] = urls
        with DrandClient(info, **kwargs) as client:
            b = client.fetch_beacon(round_id if round_id is not None else at)
    except VRFError as e:
        _fail(str(e))
    out = b.to_dict()
    out["network"] = drand_network
    out["time"] = info.time_of_round(b.round)
    _emit(out)


@app.command("derive")
def cmd_derive(
    randomness: str = typer.Option(..., "--randomness", "-R", help="Beacon randomness (32-byte hex)."),
    request_id: int = typer.Option(..., "--request-id", "-i", min=0, help="Request id (uint32)."),
    num_words: int = typer.Option(1, "--num-words", "-n", min=1, help="Number of words."),
) -> None:
    """Print the per-request seed and the derived words."""
    try:
        seed = derive_seed(from_hex(randomness), request_id)
        words = [derive_word(seed, i) for i in range(num_words)]
    except ValueError as e:
        _fail(str(e))
    _emit({"seed": to_hex(seed), "words": [to_hex(w) for w in words]})


@app.command("round-at")
def cmd_round_at(
    timestamp: Optional[float] = typer.Argument(None, help="UNIX timestamp (default: now)."),
    drand_network: str = typer.Option("quicknet", "--network", "-n", help="mainnet | fastnet | quicknet"),
) -> None:
    """Map a timestamp to the latest round published at or before it."""
    try:
        info = network(drand_network)
        t = time.time() if timestamp is None else timestamp
        rnd = info.round_at(t)
    except (VRFError, ValueError) as e:
        _fail(str(e))
    _emit({"network": drand_network, "timestamp": t, "round": rnd, "round_time": info.time_of_round(rnd)})


def main(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - thin wrapper
    """Entry-point for the ``vrf-adapter`` script and ``python -m vrf_adapter.cli``."""
    try:
        app(args=list(argv) if argv is not None else None, prog_name="vrf-adapter")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
