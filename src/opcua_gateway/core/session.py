"""Gateway session: the single OPC-UA connection held by the process.

The session starts DISCONNECTED and moves to CONNECTED only through a
successful connect. There is no way back: once connected, the driver lives
until the process exits. A failed connect leaves the session untouched, so
the host may simply retry.
"""

import structlog
from collections.abc import Callable
from enum import Enum

from opcua_gateway.core.driver import EndpointDriver
from opcua_gateway.core.errors import AlreadyConnectedError, NotConnectedError
from opcua_gateway.opcua.client import OPCUAConfig

logger = structlog.get_logger(__name__)

DriverFactory = Callable[[OPCUAConfig], EndpointDriver]


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class Session:
    """Connection state holder gating every connected-only command.

    Args:
        driver_factory: Builds an endpoint driver for a connection config
    """

    def __init__(self, driver_factory: DriverFactory):
        self._driver_factory = driver_factory
        self._state = SessionState.DISCONNECTED
        self._driver: EndpointDriver | None = None
        self._config: OPCUAConfig | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def config(self) -> OPCUAConfig | None:
        """Configuration of the active connection, if any."""
        return self._config

    @property
    def driver(self) -> EndpointDriver:
        return self.require_connection()

    def require_connection(self) -> EndpointDriver:
        """Return the connected driver.

        Raises:
            NotConnectedError: If no connection has been established
        """
        if self._state is not SessionState.CONNECTED or self._driver is None:
            raise NotConnectedError()
        return self._driver

    async def connect(self, config: OPCUAConfig) -> None:
        """Open the session's connection.

        Args:
            config: Validated connection configuration

        Raises:
            AlreadyConnectedError: If the session is already connected
            DriverError: If the driver fails to connect (state unchanged)
        """
        if self.is_connected:
            raise AlreadyConnectedError()

        driver = self._driver_factory(config)
        await driver.connect()

        self._driver = driver
        self._config = config
        self._state = SessionState.CONNECTED
        logger.info("session_connected", url=config.endpoint_url)

    async def close(self) -> None:
        """Release the driver at process exit."""
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        self._config = None
        self._state = SessionState.DISCONNECTED
        await driver.disconnect()
        logger.info("session_closed")
