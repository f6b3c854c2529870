"""
WebSocket broadcast hub.

Tracks connected clients and fans text/JSON frames out to all of them
from a single owning event loop.
"""

from .owner import LoopOwner
from .registry import ClientConnection, ConnectionRegistry, format_endpoint
from .server import BroadcastHub

__all__ = [
    "BroadcastHub",
    "ClientConnection",
    "ConnectionRegistry",
    "LoopOwner",
    "format_endpoint",
]
