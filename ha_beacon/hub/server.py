"""
WebSocket broadcast hub.

Owns the listening endpoint and every client connection:
  accept    -> register, start keepalive, notify count
  message   -> forwarded upward as raw text (no parsing here)
  disconnect-> log close details, unregister, notify count

broadcast_text() / broadcast_json() may be called from any thread; calls
made off the owning loop are queued onto it in order, so registry reads
and socket sends all happen on one timeline.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional

from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.frames import CloseCode

from ..config import settings
from ..utils import compact_json
from .owner import LoopOwner
from .registry import ClientConnection, ConnectionRegistry, format_endpoint

logger = logging.getLogger("ha_beacon.hub.server")

MessageCallback = Callable[[str], Any]
CountCallback = Callable[[int], Any]


class BroadcastHub:
    """
    Accepts WebSocket clients and fans text frames out to all of them.

    Features:
    - Idempotent start, clean failure on bind errors
    - Per-connection keepalive ping (no eviction on missed pongs)
    - Thread-safe broadcast via the owning event loop
    - Upward "message received" / "connection count changed" callbacks
    """

    def __init__(
        self,
        host: Optional[str] = None,
        keepalive_interval: Optional[float] = None,
        server_name: Optional[str] = None,
        owner: Optional[LoopOwner] = None,
    ):
        self._host = host or settings.hub.host
        self._keepalive_interval = keepalive_interval or settings.hub.keepalive_interval
        self._server_name = server_name or settings.hub.server_name
        self._owner = owner or LoopOwner()

        self._server: Optional[Server] = None
        self._port = 0
        self._registry = ConnectionRegistry()

        self._message_callbacks: list[MessageCallback] = []
        self._count_callbacks: list[CountCallback] = []
        self._pending_tasks: set[asyncio.Task] = set()

    @property
    def owner(self) -> LoopOwner:
        return self._owner

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def connection_count(self) -> int:
        return len(self._registry)

    @property
    def is_listening(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def listening_port(self) -> int:
        """Bound port, 0 when not listening."""
        return self._port if self.is_listening else 0

    def on_message_received(self, callback: MessageCallback) -> None:
        """Register callback for raw text messages from any client."""
        self._message_callbacks.append(callback)

    def on_connection_count_changed(self, callback: CountCallback) -> None:
        """Register callback receiving the new connection total."""
        self._count_callbacks.append(callback)

    # ------------------------------------------------------------------ #
    # Listener
    # ------------------------------------------------------------------ #

    async def start_listening(self, port: Optional[int] = None) -> bool:
        """
        Start accepting WebSocket clients on all interfaces.

        Args:
            port: TCP port (0 picks a free one); defaults to the configured port

        Returns:
            True if listening (including when already listening), False if
            the port could not be bound
        """
        if port is None:
            port = settings.hub.port

        if self.is_listening:
            logger.info("[WebSocket] already listening on port %d", self._port)
            return True

        if not 0 <= port <= 0xFFFF:
            logger.warning("[WebSocket] refusing to listen on invalid port %d", port)
            return False

        self._owner.bind()

        try:
            server = await serve(
                self._handle_connection,
                self._host,
                port,
                server_header=self._server_name,
                # keepalive is driven per connection below
                ping_interval=None,
            )
        except OSError as e:
            logger.warning("[WebSocket] listen failed on port %d error: %s", port, e)
            self._server = None
            self._port = 0
            return False

        self._server = server
        self._port = self._bound_port(server, port)
        logger.info("[WebSocket] listening on %s:%d", self._host, self._port)
        return True

    @staticmethod
    def _bound_port(server: Server, requested: int) -> int:
        for sock in server.sockets:
            return sock.getsockname()[1]
        return requested

    async def stop_listening(self) -> None:
        """Close every client, clear the registry and drop the listener."""
        removed = self._registry.clear()
        for conn in removed:
            conn.detached = True
            self._spawn(
                conn.websocket.close(CloseCode.GOING_AWAY, "server shutting down"),
                name=f"close-{conn.remote_endpoint}",
            )
        if removed:
            self._emit(self._count_callbacks, 0)

        if self._server is not None:
            server = self._server
            self._server = None
            server.close()
            await server.wait_closed()

        self._port = 0
        logger.info("[WebSocket] stopped")

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Per-connection handler run by the websockets server."""
        conn = self._register(websocket)
        if conn is None:
            return

        try:
            async for message in websocket:
                if conn.detached:
                    break
                if isinstance(message, str):
                    self._emit(self._message_callbacks, message)
                else:
                    logger.debug(
                        "[WebSocket] ignoring %d byte binary frame from %s",
                        len(message), conn.remote_endpoint,
                    )
        except ConnectionClosedError as e:
            logger.warning("[WebSocket] socket error from %s: %s", conn.remote_endpoint, e)
        finally:
            self._on_disconnected(conn)

    def _register(self, websocket: ServerConnection) -> Optional[ClientConnection]:
        conn = ClientConnection(
            id=websocket.id,
            websocket=websocket,
            remote_endpoint=format_endpoint(websocket.remote_address),
        )
        conn.keepalive = asyncio.create_task(
            self._keepalive(conn), name=f"keepalive-{conn.remote_endpoint}",
        )
        if not self._registry.add(conn):
            conn.cancel_keepalive()
            return None

        self._emit(self._count_callbacks, len(self._registry))
        logger.info(
            "[WebSocket] client connected from %s (total: %d)",
            conn.remote_endpoint, len(self._registry),
        )
        return conn

    def _on_disconnected(self, conn: ClientConnection) -> None:
        if conn.detached:
            return

        websocket = conn.websocket
        logger.info(
            "[WebSocket] client disconnected; remaining %d code: %s reason: %r peer: %s",
            max(len(self._registry) - 1, 0),
            websocket.close_code,
            websocket.close_reason,
            conn.remote_endpoint,
        )

        if self._registry.remove(conn.id) is None:
            return
        self._emit(self._count_callbacks, len(self._registry))

    async def _keepalive(self, conn: ClientConnection) -> None:
        """Ping the client every keepalive interval until it is removed."""
        while True:
            await asyncio.sleep(self._keepalive_interval)
            try:
                pong_waiter = await conn.websocket.ping()
            except ConnectionClosed:
                return
            pong_waiter.add_done_callback(
                functools.partial(self._on_pong, conn.remote_endpoint)
            )

    @staticmethod
    def _on_pong(endpoint: str, pong_waiter: "asyncio.Future[float]") -> None:
        if pong_waiter.cancelled():
            return
        if pong_waiter.exception() is None:
            logger.debug("[WebSocket] pong from %s in %.1f ms", endpoint, pong_waiter.result() * 1000)

    # ------------------------------------------------------------------ #
    # Broadcast
    # ------------------------------------------------------------------ #

    def broadcast_text(self, text: str) -> None:
        """Send ``text`` to every connected client. Safe from any thread."""
        if not self._owner.is_owner():
            self._owner.post(self.broadcast_text, text)
            return

        targets = self._registry.websockets()
        if not targets:
            return

        # fire-and-forget; a failing client does not affect the others
        broadcast(targets, text)
        logger.debug("[WebSocket] text sent to %d clients: %s", len(targets), text)

    def broadcast_json(self, obj: Any) -> None:
        """Serialize ``obj`` to compact JSON and broadcast it."""
        self.broadcast_text(compact_json(obj))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _emit(self, callbacks: list[Callable[..., Any]], *args: Any) -> None:
        """Call sync or async callbacks; failures are logged, never raised."""
        for callback in list(callbacks):
            try:
                result = callback(*args)
                if asyncio.iscoroutine(result):
                    self._spawn(result, name=f"callback-{getattr(callback, '__name__', 'anon')}")
            except Exception as e:
                logger.warning("Hub callback %r failed: %s", callback, e)

    def _spawn(self, coro, *, name: Optional[str] = None) -> asyncio.Task:
        """Spawn a tracked background task."""
        task = asyncio.create_task(coro, name=name)
        self._pending_tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Hub task %s failed: %s", task.get_name(), exc)
