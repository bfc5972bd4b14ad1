#!/usr/bin/env python3
"""
Speedtest Exporter -- Prometheus metrics for connection quality.

Usage::

    python exporter.py                          # serve speedtest.net metrics on :9798
    python exporter.py --backend bbk            # serve BBK metrics
    python exporter.py --backend all            # both collectors
    python exporter.py --server-id 5001         # pin a speedtest.net server
    python exporter.py --once                   # one measurement, rich table
    python exporter.py --once --json            # one measurement, JSON to stdout
    python exporter.py --list-servers           # nearest speedtest.net servers
    python exporter.py --write-config           # persist the effective config

Every scrape of ``/metrics`` runs one fresh measurement per collector.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from prometheus_client import CollectorRegistry, GCCollector, PlatformCollector, ProcessCollector, start_http_server

from collectors.bbk import BBKCollector
from collectors.config import BACKENDS, config_path, load_config, save_config, validate_config
from collectors.speedtest import SpeedtestCollector
from provider import ProviderError, SpeedtestNetProvider
from ui.dashboard import console, print_header, print_samples, print_servers
from ui.logging_setup import configure_logging
from ui.output import all_up, dump_json, sample_rows

LOGGER = logging.getLogger("exporter")

# Flags that override the config file when given.
_OVERRIDES = (
    "listen_address",
    "port",
    "backend",
    "bbk_binary",
    "server_id",
    "server_fallback",
    "log_level",
)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_provider(config: Dict[str, Any]) -> SpeedtestNetProvider:
    return SpeedtestNetProvider(
        server_limit=int(config["server_limit"]),
        ping_count=int(config["ping_count"]),
        download_duration=float(config["download_duration"]),
        upload_duration=float(config["upload_duration"]),
        connections=int(config["connections"]),
    )


def build_collectors(config: Dict[str, Any]) -> List[Any]:
    """Instantiate the collectors selected by ``backend``."""
    collectors: List[Any] = []
    if config["backend"] in ("speedtest", "all"):
        collectors.append(
            SpeedtestCollector(
                build_provider(config),
                server_id=int(config["server_id"]),
                server_fallback=bool(config["server_fallback"]),
            )
        )
    if config["backend"] in ("bbk", "all"):
        collectors.append(BBKCollector(config["bbk_binary"]))
    return collectors


def build_registry(collectors: Sequence[Any]) -> CollectorRegistry:
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)
    for collector in collectors:
        registry.register(collector)
    return registry


def merge_args(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    merged = dict(config)
    for key in _OVERRIDES:
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def run_once(collectors: Sequence[Any], json_output: bool = False) -> int:
    """Run one collection per collector, print the samples, return an exit code."""
    if not json_output:
        print_header()

    rows: List[Dict[str, Any]] = []
    for collector in collectors:
        rows.extend(sample_rows(collector.collect()))

    if json_output:
        print(dump_json(rows))
    else:
        print_samples(rows)
    return 0 if all_up(rows) else 1


def list_servers(config: Dict[str, Any]) -> int:
    try:
        servers = build_provider(config).fetch_servers()
    except ProviderError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1
    print_servers(servers)
    return 0


def serve(config: Dict[str, Any], collectors: Sequence[Any]) -> None:
    registry = build_registry(collectors)
    address, port = config["listen_address"], int(config["port"])
    server, thread = start_http_server(port, addr=address, registry=registry)

    print_header(f"http://{address}:{port}/metrics")
    LOGGER.info("Listening on %s:%d (backend: %s)", address, port, config["backend"])

    try:
        while thread.is_alive():
            thread.join(1.0)
    except KeyboardInterrupt:
        LOGGER.info("Shutting down")
    finally:
        server.shutdown()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Prometheus exporter for BBK and speedtest.net measurements",
    )
    parser.add_argument("--config", type=str, metavar="FILE", help=f"Config file (default: {config_path()})")

    # Endpoint
    parser.add_argument("--listen-address", type=str, metavar="ADDR", help="Address to serve metrics on")
    parser.add_argument("--port", type=int, metavar="PORT", help="Port to serve metrics on")

    # Backends
    parser.add_argument("--backend", choices=BACKENDS, help="Measurement backend(s) to export")
    parser.add_argument("--bbk-binary", type=str, metavar="PATH", help="Path to the bbk_cli binary")
    parser.add_argument("--server-id", type=int, metavar="ID", help="speedtest.net server ID (-1 = nearest)")
    parser.add_argument(
        "--server-fallback",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use the server offered instead when --server-id is unavailable",
    )

    parser.add_argument("--log-level", type=str.upper, metavar="LEVEL", help="Logging level (default: INFO)")

    # Modes
    parser.add_argument("--once", action="store_true", help="Run one measurement, print it and exit")
    parser.add_argument("--json", "-j", action="store_true", help="With --once, print JSON to stdout")
    parser.add_argument("--list-servers", action="store_true", help="List nearest speedtest.net servers and exit")
    parser.add_argument("--write-config", action="store_true", help="Save the effective configuration and exit")

    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    config = merge_args(load_config(args.config), args)

    try:
        validate_config(config)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    configure_logging(config["log_level"])

    if args.write_config:
        path = save_config(config, args.config)
        console.print(f"[green]Configuration saved to:[/green] {path}")
        return

    if args.list_servers:
        sys.exit(list_servers(config))

    collectors = build_collectors(config)

    if args.once:
        sys.exit(run_once(collectors, json_output=args.json))

    serve(config, collectors)


if __name__ == "__main__":
    main()
