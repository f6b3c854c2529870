"""
Home Assistant bridge.

Host object tying together the mDNS advertiser, the WebSocket hub and the
throttled status gate. The advertiser and the hub are independent: the
advertisement never touches connections and vice versa.

Threading: broadcast_text(), broadcast_json() and submit_status() may be
called from any thread. Advertisement calls and start/stop of the
listener are coroutines and must run on the owning event loop.
"""

import logging
from typing import Any, Optional

from .discovery import AttributeMap, ServiceAdvertiser
from .hub import BroadcastHub
from .status import ThrottledBroadcastGate, flatten

logger = logging.getLogger("ha_beacon.bridge")


class HomeAssistantBridge:
    """Presence (mDNS) and broadcast (WebSocket) hub for Home Assistant."""

    def __init__(
        self,
        advertiser: Optional[ServiceAdvertiser] = None,
        hub: Optional[BroadcastHub] = None,
        gate: Optional[ThrottledBroadcastGate] = None,
    ):
        self.advertiser = advertiser or ServiceAdvertiser()
        self.hub = hub or BroadcastHub()
        self.gate = gate or ThrottledBroadcastGate(self.hub)

    # ---- mDNS ----

    async def start_advertising(
        self,
        service_type: str,
        instance_name: str,
        port: int,
        attributes: Optional[AttributeMap] = None,
    ) -> bool:
        return await self.advertiser.start(service_type, instance_name, port, attributes)

    async def stop_advertising(self, keep_cache: bool = False) -> None:
        await self.advertiser.stop(keep_cache=keep_cache)

    async def re_advertise(self) -> bool:
        return await self.advertiser.republish()

    # ---- WebSocket ----

    async def start_listening(self, port: Optional[int] = None) -> bool:
        return await self.hub.start_listening(port)

    async def stop_listening(self) -> None:
        await self.hub.stop_listening()

    def broadcast_text(self, text: str) -> None:
        self.hub.broadcast_text(text)

    def broadcast_json(self, document: Any) -> None:
        self.hub.broadcast_json(document)

    @property
    def connection_count(self) -> int:
        return self.hub.connection_count

    @property
    def is_listening(self) -> bool:
        return self.hub.is_listening

    @property
    def listening_port(self) -> int:
        return self.hub.listening_port

    def on_message_received(self, callback) -> None:
        self.hub.on_message_received(callback)

    def on_connection_count_changed(self, callback) -> None:
        self.hub.on_connection_count_changed(callback)

    # ---- Status ----

    @staticmethod
    def flatten(status: dict[str, Any]) -> dict[str, Any]:
        """Pure nested -> flat status transform."""
        return flatten(status)

    def submit_status(self, status: dict[str, Any], force: bool = False) -> bool:
        """Flatten and broadcast a status document (throttled, de-duplicated)."""
        return self.gate.submit(status, force)

    # ---- Lifecycle ----

    async def shutdown(self) -> None:
        """Withdraw the advertisement, close all clients and the responder."""
        logger.info("Bridge shutting down...")
        await self.advertiser.close()
        await self.hub.stop_listening()
        logger.info("Bridge shutdown complete")
