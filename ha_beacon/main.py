"""
HA Beacon - service entry point.

Starts the WebSocket hub, advertises it over mDNS and runs until
SIGINT/SIGTERM. Settings come from HA_BEACON_* environment variables
or a .env file in the working directory; flags override them.
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional

from .bridge import HomeAssistantBridge
from .config import settings

logger = logging.getLogger("ha_beacon.main")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ha_beacon",
        description="mDNS-advertised WebSocket status hub for Home Assistant",
    )
    parser.add_argument("--port", type=int, default=settings.hub.port, help="WebSocket listen port")
    parser.add_argument("--name", type=str, default=settings.mdns.instance_name, help="mDNS instance name")
    parser.add_argument("--service-type", type=str, default=settings.mdns.service_type, help="mDNS service type")
    parser.add_argument("--no-mdns", action="store_true", help="Do not advertise via mDNS")
    parser.add_argument("--log-level", type=str, default=settings.log_level, help="Logging level")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run(args: argparse.Namespace) -> int:
    """Run the bridge until a termination signal arrives."""
    bridge = HomeAssistantBridge()
    bridge.on_message_received(lambda text: logger.info("Client message: %s", text[:200]))
    bridge.on_connection_count_changed(lambda count: logger.info("Connected clients: %d", count))

    if not await bridge.start_listening(args.port):
        logger.error("Could not listen on port %d", args.port)
        await bridge.shutdown()
        return 1

    if settings.mdns.enabled and not args.no_mdns:
        await bridge.start_advertising(
            args.service_type,
            args.name,
            bridge.listening_port,
            settings.mdns.attributes,
        )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    logger.info("HA Beacon running on port %d", bridge.listening_port)
    try:
        await stop.wait()
    finally:
        await bridge.shutdown()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
