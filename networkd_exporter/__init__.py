"""
Command line entry point for the networkd exporter.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Sequence

try:
    __version__ = version("networkd-exporter")
except PackageNotFoundError:  # source checkout without an install
    __version__ = "0.0.0+unknown"


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (``[v6]:port`` for IPv6) into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid listen address {value!r}, expected host:port")
    host = host.strip("[]") or "0.0.0.0"
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise argparse.ArgumentTypeError(f"port out of range in {value!r}")
    return host, port_num


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prometheus exporter for systemd-networkd links and DHCP server leases",
        prog="networkd-exporter",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        type=parse_listen_address,
        help="Address to listen on, host:port (default: 127.0.0.1:9558)",
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        type=str,
        help="Path under which to expose metrics (default: /metrics)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--dbus.timeout",
        dest="dbus_timeout",
        type=float,
        help="Timeout in seconds for each D-Bus call (default: 5)",
    )
    parser.add_argument(
        "--collector.link-state",
        dest="link_state",
        action="store_true",
        default=None,
        help="Also expose per-link operational/carrier/online state",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed CLI flags onto Settings field overrides."""
    overrides: dict[str, Any] = {}
    if args.listen_address is not None:
        overrides["METRICS_ADDR"], overrides["METRICS_PORT"] = args.listen_address
    if args.telemetry_path is not None:
        overrides["METRICS_PATH"] = args.telemetry_path
    if args.log_level is not None:
        overrides["LOG_LEVEL"] = args.log_level.upper()
    if args.dbus_timeout is not None:
        overrides["DBUS_TIMEOUT_SECONDS"] = args.dbus_timeout
    if args.link_state:
        overrides["ENABLE_LINK_STATE_METRICS"] = True
    return overrides


def configure_logging(log_level: str, log_file: str | None = None, truncate: bool = False) -> None:
    kwargs: dict[str, Any] = {
        "level": getattr(logging, log_level.upper()),
        "format": "%(asctime)s %(levelname)s %(message)s",
    }
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        kwargs.update(filename=log_file, filemode="w" if truncate else "a", encoding="utf-8")
    logging.basicConfig(**kwargs)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the exporter."""
    from pydantic import ValidationError

    from config import Settings

    args = build_parser().parse_args(argv)

    try:
        settings = Settings(**settings_overrides(args))
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE, settings.LOG_TRUNCATE_ON_START)

    from main import run

    sys.exit(run(settings))
