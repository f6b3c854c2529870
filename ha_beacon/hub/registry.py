"""
Registry of open client connections.

Each entry pairs the transport handle with its keepalive task. The
registry is only touched from the owning event loop.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

logger = logging.getLogger("ha_beacon.hub.registry")


def format_endpoint(address: Any) -> str:
    """Render a transport peer address as "host:port"."""
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    if address is None:
        return "unknown"
    return str(address)


@dataclass
class ClientConnection:
    """One connected client."""
    id: Any
    websocket: Any
    remote_endpoint: str
    keepalive: Optional[asyncio.Task] = None
    connected_at: float = field(default_factory=time.time)
    detached: bool = False

    def cancel_keepalive(self) -> None:
        if self.keepalive is not None and not self.keepalive.done():
            self.keepalive.cancel()
        self.keepalive = None


class ConnectionRegistry:
    """
    Set of open connections keyed by their stable identity.

    Invariants:
    - no duplicate identities
    - every entry carries a running keepalive task; removing an entry
      cancels it
    """

    def __init__(self):
        self._clients: dict[Any, ClientConnection] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[ClientConnection]:
        return iter(list(self._clients.values()))

    def __contains__(self, conn_id: Any) -> bool:
        return conn_id in self._clients

    def get(self, conn_id: Any) -> Optional[ClientConnection]:
        return self._clients.get(conn_id)

    def add(self, conn: ClientConnection) -> bool:
        """
        Register a connection.

        Returns:
            False if a connection with the same identity is already present

        Raises:
            ValueError: If the connection has no keepalive task
        """
        if conn.keepalive is None:
            raise ValueError(f"Connection {conn.remote_endpoint} has no keepalive task")
        if conn.id in self._clients:
            logger.warning("Duplicate connection %s ignored", conn.remote_endpoint)
            return False
        self._clients[conn.id] = conn
        return True

    def remove(self, conn_id: Any) -> Optional[ClientConnection]:
        """Drop a connection and cancel its keepalive. None if unknown."""
        conn = self._clients.pop(conn_id, None)
        if conn is not None:
            conn.cancel_keepalive()
        return conn

    def clear(self) -> list[ClientConnection]:
        """Drop every connection, returning what was removed."""
        removed = list(self._clients.values())
        self._clients.clear()
        for conn in removed:
            conn.cancel_keepalive()
        return removed

    def websockets(self) -> list[Any]:
        """Transport handles in registration order."""
        return [conn.websocket for conn in self._clients.values()]
