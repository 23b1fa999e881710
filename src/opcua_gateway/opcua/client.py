"""OPC-UA client driver with connection lifecycle management.

This module provides OPCUAClient, the asyncua-backed endpoint driver the
gateway session connects through, and browse_servers for endpoint
discovery. The driver owns the node cache and refreshes it on a background
update cycle, reconnecting on its own if the server goes away.
"""

import asyncio
import contextlib
import structlog
from collections.abc import Sequence
from dataclasses import dataclass, field

from asyncua import Client, Node, ua
from asyncua.crypto.security_policies import SecurityPolicyBasic256Sha256

from opcua_gateway.core.errors import DriverError
from opcua_gateway.opcua.browsing import NodeBrowsingService, is_connection_lost
from opcua_gateway.opcua.values import to_json, to_variant
from opcua_gateway.port.codec import Value

logger = structlog.get_logger(__name__)


def describe_error(error: BaseException) -> str:
    """Message reported to the host for a driver-side failure."""
    return str(error) or type(error).__name__


@dataclass
class OPCUAConfig:
    """Configuration for an OPC-UA client connection.

    Attributes:
        endpoint_url: OPC-UA server endpoint URL (opc.tcp://...)
        certificate: DER client certificate (enables Basic256Sha256 SignAndEncrypt)
        private_key: PEM private key matching the certificate
        username: Username for user/password authentication
        password: Password for user/password authentication
        update_cycle: Node cache refresh period in milliseconds (0 disables)
        connect_timeout: Request timeout in seconds
        watchdog_interval: Connection watchdog check interval in seconds
        max_reconnect_delay: Maximum delay between reconnection attempts in seconds
        max_nodes_per_level: Fan-out limit when walking the address space
        max_browse_depth: Depth limit when walking the address space
    """

    endpoint_url: str = "opc.tcp://localhost:4840"
    certificate: bytes | None = field(default=None, repr=False)
    private_key: bytes | None = field(default=None, repr=False)
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    update_cycle: int = 0
    connect_timeout: float = 10.0
    watchdog_interval: float = 5.0
    max_reconnect_delay: int = 30
    max_nodes_per_level: int = 1000
    max_browse_depth: int = 10

    @property
    def is_secure(self) -> bool:
        return self.certificate is not None and self.private_key is not None


class OPCUAClient:
    """OPC-UA endpoint driver backed by asyncua.Client.

    The driver:
    - Connects once and fails loudly (DriverError) so the caller stays disconnected
    - Walks the address space into a path-keyed node cache on connect
    - Refreshes the cache every update cycle in a background task
    - Reconnects with exponential backoff when the refresh finds the link down
    """

    def __init__(self, config: OPCUAConfig, browser: NodeBrowsingService | None = None):
        self._config = config
        self._client: Client | None = None
        self._connected = False
        self._browser = browser or NodeBrowsingService(
            max_nodes_per_level=config.max_nodes_per_level,
            max_depth=config.max_browse_depth,
        )
        self._update_task: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        """Check if client is currently connected to server."""
        return self._connected

    @property
    def native_client(self) -> Client | None:
        """Access the underlying asyncua.Client."""
        return self._client

    @property
    def config(self) -> OPCUAConfig:
        return self._config

    # --- Connection lifecycle ---

    async def connect(self) -> None:
        """Connect to the OPC-UA server and populate the node cache.

        Raises:
            DriverError: If the connection or the initial browse fails
        """
        self._shutdown_event.clear()
        await self._try_connect_once()
        logger.info(
            "opcua_connected",
            url=self._config.endpoint_url,
            nodes=len(self._browser.paths),
            secure=self._config.is_secure,
        )

        if self._config.update_cycle > 0:
            self._update_task = asyncio.create_task(self._update_loop())

    async def disconnect(self) -> None:
        """Gracefully disconnect from server.

        Stops the update cycle and closes the connection. Safe to call
        multiple times.
        """
        self._shutdown_event.set()

        if self._update_task and not self._update_task.done():
            self._update_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._update_task
        self._update_task = None

        await self._drop_client()
        self._browser.clear()

    # --- Node access ---

    def cached_paths(self) -> Sequence[str]:
        """Current node cache snapshot, in browse order."""
        return self._browser.paths

    async def read_value(self, path: str) -> Value:
        """Read the current value of a node.

        Args:
            path: Cached browse path, or an OPC-UA NodeId string

        Returns:
            The node value converted to a JSON-compatible value

        Raises:
            DriverError: If the path is unknown or the read fails
        """
        node = self._resolve(path)
        try:
            value = await node.read_value()
        except Exception as e:
            raise DriverError(describe_error(e)) from e
        return to_json(value)

    async def write_value(self, path: str, value: Value) -> None:
        """Write a value to a node, coerced to the node's variant type.

        Raises:
            DriverError: If the path is unknown, the value does not fit the
                node's type, or the server rejects the write
        """
        node = self._resolve(path)
        try:
            variant_type = await node.read_data_type_as_variant_type()
        except Exception as e:
            raise DriverError(describe_error(e)) from e

        try:
            variant = to_variant(value, variant_type)
        except (TypeError, ValueError, ua.UaError) as e:
            raise DriverError(f"invalid value for {variant_type.name}: {e}") from e

        try:
            await node.write_value(ua.DataValue(Value=variant))
        except Exception as e:
            raise DriverError(describe_error(e)) from e

    # --- Internal methods ---

    def _resolve(self, path: str) -> Node:
        """Find the node for a cached path or a NodeId string."""
        if not self._connected or self._client is None:
            raise DriverError("connection lost")

        node = self._browser.resolve(path)
        if node is not None:
            return node

        try:
            node_id = ua.NodeId.from_string(path)
        except (ValueError, ua.UaError):
            raise DriverError(f"invalid node path: {path}") from None
        return self._client.get_node(node_id)

    def _build_client(self) -> Client:
        client = Client(
            url=self._config.endpoint_url,
            timeout=self._config.connect_timeout,
            watchdog_intervall=self._config.watchdog_interval,
        )

        # Authentication
        if self._config.username is not None:
            client.set_user(self._config.username)
            client.set_password(self._config.password)

        return client

    async def _try_connect_once(self) -> None:
        """Attempt a single connection and initial browse.

        On failure the half-open client is closed and nothing is retained.

        Raises:
            DriverError: Carrying the underlying failure message
        """
        client = self._build_client()
        try:
            if self._config.is_secure:
                await client.set_security(
                    SecurityPolicyBasic256Sha256,
                    certificate=self._config.certificate,
                    private_key=self._config.private_key,
                    mode=ua.MessageSecurityMode.SignAndEncrypt,
                )
            await client.connect()
            await self._browser.refresh(client)
        except asyncio.CancelledError:
            with contextlib.suppress(Exception):
                await client.disconnect()
            raise
        except Exception as e:
            logger.warning(
                "opcua_connect_failed",
                url=self._config.endpoint_url,
                error=describe_error(e),
            )
            with contextlib.suppress(Exception):
                await client.disconnect()
            raise DriverError(describe_error(e)) from e

        self._client = client
        self._connected = True

    async def _drop_client(self) -> None:
        self._connected = False
        if self._client:
            try:
                await self._client.disconnect()
            except Exception as e:
                logger.warning("opcua_disconnect_error", error=describe_error(e))
            self._client = None

    async def _wait_for_shutdown(self, delay: float) -> bool:
        """Sleep for delay seconds; True if shutdown was signaled meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def _update_loop(self) -> None:
        """Refresh the node cache every update cycle.

        A refresh that finds the connection gone drops the client and
        retries the connection with exponential backoff until shutdown.
        """
        interval = self._config.update_cycle / 1000.0
        delay = interval

        while not await self._wait_for_shutdown(delay):
            if not self._connected:
                try:
                    await self._try_connect_once()
                except DriverError:
                    delay = min(max(delay * 2, 1), self._config.max_reconnect_delay)
                    continue
                logger.info("opcua_reconnected", url=self._config.endpoint_url)
                delay = interval
                continue

            try:
                await self._browser.refresh(self._client)
            except (ConnectionError, OSError, asyncio.TimeoutError, ua.UaStatusCodeError) as e:
                if isinstance(e, ua.UaStatusCodeError) and not is_connection_lost(e):
                    logger.error("opcua_cache_refresh_failed", error=describe_error(e))
                    continue
                logger.warning(
                    "opcua_connection_lost",
                    url=self._config.endpoint_url,
                    error=describe_error(e),
                )
                await self._drop_client()
                delay = 1
            except Exception as e:
                logger.error("opcua_cache_refresh_failed", error=describe_error(e))


async def browse_servers(host: str, port: int, timeout: float = 10.0) -> list[str]:
    """Discover the servers known to an OPC-UA discovery endpoint.

    Args:
        host: Host name or address of the discovery endpoint
        port: TCP port of the discovery endpoint

    Returns:
        Discovery URLs of every announced server, in order, without duplicates

    Raises:
        DriverError: If the discovery endpoint cannot be queried
    """
    url = f"opc.tcp://{host}:{port}"
    client = Client(url=url, timeout=timeout)
    try:
        servers = await client.connect_and_find_servers()
    except Exception as e:
        logger.warning("opcua_discovery_failed", url=url, error=describe_error(e))
        raise DriverError(describe_error(e)) from e

    urls: list[str] = []
    for server in servers:
        for discovery_url in server.DiscoveryUrls or []:
            if discovery_url not in urls:
                urls.append(discovery_url)

    logger.debug("opcua_servers_discovered", url=url, count=len(urls))
    return urls
