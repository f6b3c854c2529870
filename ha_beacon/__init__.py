"""
HA Beacon - local network presence and broadcast hub.

Advertises a WebSocket endpoint via mDNS and fans flattened device status
out to every connected client (typically Home Assistant).
"""

from .bridge import HomeAssistantBridge
from .discovery import AdvertisedService, AdvertisementState, ServiceAdvertiser
from .hub import BroadcastHub, ConnectionRegistry, LoopOwner
from .status import ThrottledBroadcastGate, flatten

__version__ = "0.1.0"

__all__ = [
    "AdvertisedService",
    "AdvertisementState",
    "BroadcastHub",
    "ConnectionRegistry",
    "HomeAssistantBridge",
    "LoopOwner",
    "ServiceAdvertiser",
    "ThrottledBroadcastGate",
    "flatten",
]
