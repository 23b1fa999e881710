"""Endpoint driver protocol.

This module defines the narrow interface the gateway core needs from the
component that owns the actual OPC UA connection. The asyncua-backed
implementation lives in ``opcua_gateway.opcua``; tests substitute an
in-memory fake.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from opcua_gateway.port.codec import Value

# Discovery coroutine used by browse_servers: (host, port) -> endpoint URLs
ServerDiscovery = Callable[[str, int], Awaitable[list[str]]]


class EndpointDriver(Protocol):
    """Protocol for OPC UA endpoint drivers.

    All failures are raised as DriverError carrying the message that is
    reported back to the host verbatim.

    Example:
        >>> driver = OPCUAClient(OPCUAConfig(endpoint_url="opc.tcp://plc:4840"))
        >>> await driver.connect()
        >>> await driver.read_value("Line1/Temperature")
        21.5
    """

    @property
    def is_connected(self) -> bool:
        """True while the driver holds a live connection."""
        ...

    async def connect(self) -> None:
        """Open the connection and populate the node cache.

        Raises:
            DriverError: If the server cannot be reached or rejects the session
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection and stop any background activity."""
        ...

    async def read_value(self, path: str) -> Value:
        """Read the current value of a node as a JSON-compatible value."""
        ...

    async def write_value(self, path: str, value: Value) -> None:
        """Write a JSON-compatible value to a node."""
        ...

    def cached_paths(self) -> Sequence[str]:
        """Return the current node cache snapshot, in browse order."""
        ...
