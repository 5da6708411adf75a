#!/usr/bin/env python3
"""
Command-line interface.

Subcommands:
- serve            run the HTTP API (uvicorn)
- watch            follow the event stream with automatic reconnection
- test-connection  connect/disconnect round trip against an OPC UA endpoint
- sim-server       run a local OPC UA station server with changing values
"""

import argparse
import asyncio
import json
import logging
import random
import sys

import httpx
import uvicorn

from waterstation.adapters.opcua_asyncua_server import StationServerAdapter
from waterstation.api.app import create_app
from waterstation.client.mirror import ClientTagMirror
from waterstation.client.reconnect import ClientState, ReconnectionController
from waterstation.client.sse import sse_events
from waterstation.config.config_loader import StationConfig, load_station_config
from waterstation.errors import ConfigError
from waterstation.runtime import StationRuntime
from waterstation.session.simulator import DegradedSimulator
from waterstation.tags.registry import get_default_registry

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Suppress noisy asyncua protocol messages
    logging.getLogger("asyncua").setLevel(logging.WARNING)


# ----------------------------------------------------------------
# Subcommands
# ----------------------------------------------------------------


def cmd_serve(args, config: StationConfig) -> int:
    runtime = StationRuntime(config)
    app = create_app(runtime)
    uvicorn.run(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
        log_level=config.log_level.lower(),
    )
    return 0


async def cmd_watch(args, config: StationConfig) -> int:
    mirror = ClientTagMirror()

    def on_event(event):
        for tag, value in mirror.apply(event):
            print(f"{tag} = {value}")

    def on_status(state: ClientState, message: str | None):
        if message:
            print(message, file=sys.stderr)

    params = {"url": args.endpoint} if args.endpoint else None
    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None)) as client:
        controller = ReconnectionController(
            lambda: sse_events(client, f"{args.api.rstrip('/')}/api/socket", params),
            on_event,
            max_retries=config.client.max_retries,
            retry_delay=config.client.retry_delay,
            on_status=on_status,
        )
        state = await controller.run()

    return 1 if state is ClientState.GAVE_UP else 0


async def cmd_test_connection(args, config: StationConfig) -> int:
    runtime = StationRuntime(config)
    await runtime.initialise()
    try:
        result = await runtime.test_connection(args.endpoint)
    finally:
        await runtime.shutdown()

    print(json.dumps(result))
    return 0 if result.get("success") else 1


async def cmd_sim_server(args, config: StationConfig) -> int:
    registry = get_default_registry()
    server = StationServerAdapter(registry, endpoint=args.endpoint)
    simulator = DegradedSimulator(
        registry,
        server.set_variable,
        level_interval=config.simulator.level_interval,
        toggle_interval=config.simulator.toggle_interval,
        rng=random.Random(config.simulator.seed),
    )

    await server.start()
    await simulator.start()
    try:
        await asyncio.Event().wait()
    finally:
        await simulator.stop()
        await server.stop()
    return 0


# ----------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waterstation",
        description="Water treatment station OPC UA tag synchronisation",
    )
    parser.add_argument(
        "--config-dir", default="config", help="directory holding station.yml"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    watch = sub.add_parser("watch", help="print tag changes from a running API")
    watch.add_argument("--api", default="http://localhost:8080")
    watch.add_argument("--endpoint", default=None, help="OPC UA endpoint to request")

    test = sub.add_parser("test-connection", help="check an OPC UA endpoint")
    test.add_argument("endpoint", nargs="?", default=None)

    sim = sub.add_parser("sim-server", help="run a local OPC UA station server")
    sim.add_argument("--endpoint", default="opc.tcp://0.0.0.0:4334/")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_station_config(args.config_dir)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    if args.command == "serve":
        return cmd_serve(args, config)

    commands = {
        "watch": cmd_watch,
        "test-connection": cmd_test_connection,
        "sim-server": cmd_sim_server,
    }
    try:
        return asyncio.run(commands[args.command](args, config))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, shutting down")
        return 0


if __name__ == "__main__":
    sys.exit(main())
