"""Command line entry points.

serve  run the mock broadcast-tool server for local development
check  connect to a broadcast tool and print the stored match data
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace

from .config import Config, load_config
from .errors import ObsTasoError
from .match import MatchBroadcaster
from .mock_server import MockObsServer
from .session import ObsSession

_LOGGER = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obs_taso",
        description="Floorball overlay bridge for OBS WebSocket v5",
    )
    parser.add_argument("--config", "-c", help="Path to config file", default=None)
    parser.add_argument(
        "--debug", "-d", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the mock OBS WebSocket server")
    serve.add_argument("--host", help="Interface to bind (default: localhost)")
    serve.add_argument("--port", "-p", type=int, help="Port (default: 4455)")
    serve.add_argument(
        "--password", help="Require this password instead of accepting any"
    )
    serve.add_argument(
        "--no-auth",
        action="store_true",
        help="Do not advertise an authentication challenge",
    )

    check = sub.add_parser("check", help="Connect and print the stored match data")
    check.add_argument("--url", help="WebSocket URL (default: ws://localhost:4455)")
    check.add_argument("--password", help="WebSocket password")

    return parser


async def _serve(config: Config) -> None:
    server = MockObsServer(
        config.server.host,
        config.server.port,
        password=config.server.password,
        authentication=config.server.authentication,
    )
    await server.start()
    _LOGGER.info("Press Ctrl+C to stop")
    try:
        await server.serve_forever()
    finally:
        await server.stop()


async def _check(config: Config) -> int:
    obs = replace(
        config.obs, reconnect=False, request_timeout=config.obs.request_timeout or 10.0
    )
    session = ObsSession.from_config(obs)
    try:
        await session.connect(config.obs.url, config.obs.password)
    except ObsTasoError as err:
        print(f"Connection failed: {err}", file=sys.stderr)
        return 1

    try:
        broadcaster = MatchBroadcaster(session)
        data = await broadcaster.get_match_data()
        print(f"Connected to {config.obs.url} (rpc v{session.negotiated_rpc_version})")
        print(json.dumps(data, indent=2, ensure_ascii=False))
    finally:
        await session.disconnect()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    if args.debug:
        config.debug = True
    setup_logging(config.debug)

    if args.command == "serve":
        if args.host:
            config.server.host = args.host
        if args.port is not None:
            config.server.port = args.port
        if args.password is not None:
            config.server.password = args.password
        if args.no_auth:
            config.server.authentication = False
        try:
            asyncio.run(_serve(config))
        except KeyboardInterrupt:
            _LOGGER.info("Shutting down...")
        return 0

    if args.url:
        config.obs.url = args.url
    if args.password is not None:
        config.obs.password = args.password
    return asyncio.run(_check(config))
