"""OPC-UA gateway process entry point.

The host process spawns the gateway and talks to it over stdin/stdout with
length-prefixed JSON commands. Logs go to stderr.
"""

import asyncio
import sys

import structlog

from opcua_gateway.core.config import Settings, get_settings
from opcua_gateway.core.dispatcher import Dispatcher
from opcua_gateway.core.errors import TransportError
from opcua_gateway.core.logging import configure_logging
from opcua_gateway.core.session import Session
from opcua_gateway.opcua.client import OPCUAClient, OPCUAConfig, browse_servers
from opcua_gateway.port.framing import Framer, open_stdio
from opcua_gateway.port.server import serve

logger = structlog.get_logger(__name__)


def build_dispatcher(settings: Settings) -> Dispatcher:
    """Wire the session and dispatcher from settings."""
    base_config = OPCUAConfig(
        connect_timeout=settings.connect_timeout,
        watchdog_interval=settings.watchdog_interval,
        max_reconnect_delay=settings.max_reconnect_delay,
        max_nodes_per_level=settings.max_nodes_per_level,
        max_browse_depth=settings.max_browse_depth,
    )

    async def discover(host: str, port: int) -> list[str]:
        return await browse_servers(host, port, timeout=settings.connect_timeout)

    session = Session(driver_factory=OPCUAClient)
    return Dispatcher(session, discover=discover, base_config=base_config)


async def run(settings: Settings) -> int:
    """Serve commands on stdio until the host closes the channel."""
    dispatcher = build_dispatcher(settings)
    reader, writer = await open_stdio()
    framer = Framer(reader, writer, header_length=settings.header_length)

    try:
        return await serve(framer, dispatcher)
    finally:
        await dispatcher.session.close()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_format, settings.log_level)
    logger.info("gateway_starting", header_length=settings.header_length)

    try:
        asyncio.run(run(settings))
    except TransportError as e:
        logger.error("gateway_transport_failed", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("gateway_interrupted")
        sys.exit(1)

    logger.info("gateway_stopped")


if __name__ == "__main__":
    main()
