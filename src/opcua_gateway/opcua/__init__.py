"""OPC-UA endpoint driver built on asyncua."""

from opcua_gateway.opcua.browsing import NodeBrowsingService
from opcua_gateway.opcua.client import OPCUAClient, OPCUAConfig, browse_servers

__all__ = [
    "NodeBrowsingService",
    "OPCUAClient",
    "OPCUAConfig",
    "browse_servers",
]
