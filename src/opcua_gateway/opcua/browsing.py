"""OPC-UA node cache built by walking the server address space.

This module provides NodeBrowsingService, which walks hierarchical
references down from the Objects folder and keeps a path -> Node map that
backs browse_nodes, search, and path resolution for reads and writes.
"""

import structlog
from collections.abc import Sequence

from asyncua import Client, Node, ua

logger = structlog.get_logger(__name__)

PATH_SEPARATOR = "/"

# Status codes meaning the session or secure channel is gone
CONNECTION_LOST_CODES = frozenset(
    {
        ua.StatusCodes.BadSessionIdInvalid,
        ua.StatusCodes.BadSessionClosed,
        ua.StatusCodes.BadSessionNotActivated,
        ua.StatusCodes.BadSecureChannelClosed,
        ua.StatusCodes.BadSecureChannelIdInvalid,
        ua.StatusCodes.BadConnectionClosed,
        ua.StatusCodes.BadNotConnected,
        ua.StatusCodes.BadServerNotConnected,
        ua.StatusCodes.BadCommunicationError,
    }
)


def is_connection_lost(error: ua.UaStatusCodeError) -> bool:
    """True if a service fault means the session itself is unusable."""
    return error.code in CONNECTION_LOST_CODES


class NodeBrowsingService:
    """Path-keyed cache of the server address space.

    Paths are browse names joined with "/" starting below the Objects
    folder, e.g. "Line1/Oven/Temperature". Standard namespace-0 nodes (the
    Server object and its diagnostics) are skipped.

    A refresh builds a new map and swaps it in whole, so callers reading
    between awaits always see one complete snapshot.

    Features:
    - Depth limit and max nodes per level to bound the walk
    - Cycle-safe: every NodeId is visited at most once per walk
    - First path wins when two nodes share a browse path
    """

    def __init__(self, max_nodes_per_level: int = 1000, max_depth: int = 10):
        self._max_nodes_per_level = max_nodes_per_level
        self._max_depth = max_depth
        self._cache: dict[str, Node] = {}
        self._paths: tuple[str, ...] = ()

    @property
    def paths(self) -> Sequence[str]:
        """Current snapshot of cached paths in browse order."""
        return self._paths

    def resolve(self, path: str) -> Node | None:
        """Look up the node cached under a path."""
        return self._cache.get(path)

    def clear(self) -> None:
        """Drop all cached nodes."""
        self._cache = {}
        self._paths = ()

    async def refresh(self, native_client: Client) -> int:
        """Rebuild the cache from the server's Objects folder.

        Args:
            native_client: Connected asyncua Client

        Returns:
            Number of cached nodes

        Raises:
            ua.UaStatusCodeError: If the Objects folder cannot be browsed or
                the session is lost mid-walk; the previous snapshot is kept
        """
        cache: dict[str, Node] = {}
        visited: set[ua.NodeId] = set()
        await self._walk(native_client.nodes.objects, "", 0, cache, visited)

        self._cache = cache
        self._paths = tuple(cache)
        logger.debug("opcua_cache_refreshed", nodes=len(cache))
        return len(cache)

    # --- Internal ---

    async def _walk(
        self,
        parent: Node,
        prefix: str,
        depth: int,
        cache: dict[str, Node],
        visited: set[ua.NodeId],
    ) -> None:
        if depth >= self._max_depth:
            return

        try:
            children = await parent.get_children(refs=ua.ObjectIds.HierarchicalReferences)
        except ua.UaStatusCodeError as e:
            # Objects itself must be browsable or the walk has nothing to replace
            if depth == 0 or is_connection_lost(e):
                raise
            logger.debug(
                "opcua_browse_error",
                node_id=parent.nodeid.to_string(),
                error=str(e),
            )
            return

        if len(children) > self._max_nodes_per_level:
            children = children[: self._max_nodes_per_level]
            logger.warning(
                "opcua_browse_truncated",
                parent=prefix or "Objects",
                max=self._max_nodes_per_level,
            )

        for child in children:
            node_id = child.nodeid
            if node_id.NamespaceIndex == 0 or node_id in visited:
                continue
            visited.add(node_id)

            try:
                browse_name = await child.read_browse_name()
            except ua.UaStatusCodeError as e:
                if is_connection_lost(e):
                    raise
                logger.debug(
                    "opcua_node_read_error",
                    node_id=node_id.to_string(),
                    error=str(e),
                )
                continue

            path = f"{prefix}{PATH_SEPARATOR}{browse_name.Name}" if prefix else browse_name.Name
            cache.setdefault(path, child)
            await self._walk(child, path, depth + 1, cache, visited)
