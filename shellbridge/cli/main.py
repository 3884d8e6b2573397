"""
Command line entrypoint for shellbridge.

Version: 0.3.0
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml

from shellbridge import __version__
from shellbridge.config import BridgeConfig, load_config
from shellbridge.core.bridge import (
    Bridge,
    ConfigurationError,
    RecordingChannel,
    SandboxViolationError,
)
from shellbridge.core.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellbridge",
        description="Native service bridge for sandboxed front-ends.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--root", default=".", help="Application directory (default: current directory).")
    parser.add_argument("--config", default=None, help="Configuration file (default: <root>/shellbridge.yaml).")
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")

    subcommands = parser.add_subparsers(dest="command", required=True)

    serve = subcommands.add_parser("serve", help="Run the bridge server.")
    serve.add_argument("--host", default=None, help="Bind address.")
    serve.add_argument("--port", type=int, default=None, help="Bind port.")

    subcommands.add_parser("check", help="Validate the configuration and run the configure phase.")

    services = subcommands.add_parser("services", help="List declared services.")
    services.add_argument("--json", action="store_true", help="Output as JSON.")

    resolve = subcommands.add_parser("resolve", help="Resolve a resource URL to a file path.")
    resolve.add_argument("url", help="URL to resolve, e.g. app://localhost/index.html")
    resolve.add_argument("--partition", default=None, help="Session partition.")

    call = subcommands.add_parser("call", help="Invoke a service action and print the results.")
    call.add_argument("service", help="Service name.")
    call.add_argument("action", help="Action name.")
    call.add_argument("args", nargs="?", default="[]", help="JSON array of arguments.")

    return parser


def handle_check(bridge: Bridge) -> int:
    accumulator = bridge.configure()
    print(yaml.safe_dump({
        "base_url": bridge.base_url,
        "app_root": str(bridge.config.app_root),
        **accumulator.to_dict(),
    }, sort_keys=False), end="")
    return 0


def handle_services(bridge: Bridge, as_json: bool) -> int:
    status = bridge.registry.get_status()
    if as_json:
        print(json.dumps(status, indent=2))
        return 0
    if not status:
        print("No services declared.")
        return 0
    width = max(len(entry["name"]) for entry in status)
    for entry in status:
        print(f"{entry['name']:<{width}}  {entry['state']:<12}  {entry['module']}")
    return 0


def handle_resolve(bridge: Bridge, url: str, partition: Optional[str]) -> int:
    asyncio.run(bridge.mark_ready())
    try:
        path = bridge.resolve(url, partition)
    except SandboxViolationError as e:
        print(f"refused: {e.reason}", file=sys.stderr)
        return 1
    print(path)
    return 0


def handle_call(bridge: Bridge, service: str, action: str, raw_args: str) -> int:
    try:
        args: Any = json.loads(raw_args)
    except ValueError as e:
        print(f"Invalid JSON arguments: {e}", file=sys.stderr)
        return 1
    if not isinstance(args, list):
        args = [args]

    channel = RecordingChannel()

    async def run() -> None:
        await bridge.mark_ready()
        await bridge.exec(service, action, args, "cli", channel)

    asyncio.run(run())
    for _, message in channel.messages:
        print(json.dumps(message))
    failed = any(message.get("status") != 1 for _, message in channel.messages)
    return 1 if failed or not channel.messages else 0


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    root = Path(args.root).resolve()
    try:
        config: BridgeConfig = load_config(root, args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        configure_logging(args.log_level)
        logger.error("Cannot load configuration: %s", e)
        raise SystemExit(EXIT_CONFIG_ERROR)

    configure_logging(
        args.log_level or config.logging.level,
        log_file=config.logging.path,
        reset_on_start=config.logging.reset_on_start,
        plugin_levels=config.logging.plugins,
    )

    bridge = Bridge(config)
    try:
        if args.command == "serve":
            from shellbridge.server.api import run_server

            bridge.configure()
            run_server(bridge, host=args.host, port=args.port)
            exit_code = 0
        elif args.command == "check":
            exit_code = handle_check(bridge)
        elif args.command == "services":
            exit_code = handle_services(bridge, args.json)
        elif args.command == "resolve":
            exit_code = handle_resolve(bridge, args.url, args.partition)
        elif args.command == "call":
            exit_code = handle_call(bridge, args.service, args.action, args.args)
        else:
            raise ValueError(f"Unhandled command {args.command}")
    except ConfigurationError as e:
        logger.critical("Fatal configuration error: %s", e)
        raise SystemExit(EXIT_CONFIG_ERROR)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
