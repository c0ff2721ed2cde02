"""
WebSocket Server and Connection Management.

This module is responsible for:
- Configuring and starting the `websockets` asyncio server (host, port,
  per-message deflate).
- Tracking the active client connection (Idle/Connected).
- Forwarding inbound frames to the message handler (the dispatcher).
- Pushing unsolicited `stateChange` notifications from the pin registry
  to the tracked connection.
"""
import asyncio
from enum import Enum
import logging
from typing import Any, Dict, Optional, Set, Union
import uuid

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from pi_ws_gpio.server.dispatcher import MessageHandler
from pi_ws_gpio.server.models import NO_MESSAGE_ID, MessageType, Reply, StateChangePayload


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"


class ConnectionManager:
    config: dict
    handler: Optional[MessageHandler]
    host: str
    port: int
    per_message_deflate: bool
    generate_id: bool
    _server: Optional[Server]
    _connection: Optional[ServerConnection]
    _pending_sends: Set[asyncio.Task]

    """
    Owns the single tracked connection. A new connection replaces the
    previous one as the addressee of interrupt notifications; replies always
    go back to the connection a request arrived on.
    """
    def __init__(self, config: Dict[str, Any], handler: Optional[MessageHandler] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.handler = handler
        self._logger = logger or logging.getLogger(__name__)

        server_conf = self.config.get('server', {})
        self.host = server_conf.get('host', '0.0.0.0')
        self.port = int(server_conf.get('port', 9080))
        self.per_message_deflate = bool(server_conf.get('per_message_deflate', False))
        self.generate_id = bool(self.config.get('generate_id', False))

        self._server = None
        self._connection = None
        self._pending_sends = set()

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._connection is not None else ConnectionState.IDLE

    @property
    def address(self) -> str:
        """The bound address as `host:port`, or the configured one before start."""
        if self._server is not None and self._server.sockets:
            host, port = self._server.sockets[0].getsockname()[:2]
            if ':' in host:
                host = f"[{host}]"
            return f"{host}:{port}"
        return f"{self.host}:{self.port}"

    async def start(self):
        """
        Binds the listening socket. Connections are served in the background.
        """
        if self.handler is None:
            raise RuntimeError("ConnectionManager started without a message handler")
        self._server = await serve(
            self._handle_connection,
            self.host,
            self.port,
            compression="deflate" if self.per_message_deflate else None,
        )
        self._logger.info(f"GPIO WebSocket server listening on {self.address}")

    async def stop(self):
        """
        Closes the server and every open connection.
        """
        if self._server is not None:
            self._logger.info("Stopping WebSocket server...")
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._pending_sends:
            await asyncio.gather(*self._pending_sends, return_exceptions=True)
        self._connection = None
        self._logger.info("WebSocket server stopped.")

    async def _handle_connection(self, connection: ServerConnection):
        """Runs for the lifetime of one client connection."""
        self.on_connect(connection)
        try:
            async for raw in connection:
                await self.on_message(connection, raw)
        except ConnectionClosedOK:
            self._logger.debug("Connection closed while a reply was pending.")
        except ConnectionClosedError as e:
            self.on_error(e)
        finally:
            self.on_close(connection)

    # --- State machine transitions ---

    def on_connect(self, connection: ServerConnection):
        remote = getattr(connection, 'remote_address', None)
        if self._connection is not None and self._connection is not connection:
            self._logger.info(f"Connection from {remote} replaces the tracked connection")
        self._connection = connection
        self._logger.info(f"Incoming connection from {remote}")

    async def on_message(self, connection: ServerConnection, raw: Union[str, bytes]):
        await self.handler.handle_message(connection, raw)

    def on_error(self, error: Exception):
        # The transport decides whether the connection survives
        self._logger.error(f"Connection error: {error}")

    def on_close(self, connection: ServerConnection):
        if self._connection is connection:
            self._connection = None
            self._logger.info("Connection closed, no active connection.")
        else:
            self._logger.debug("Untracked connection closed.")

    # --- Outbound notifications ---

    def publish_state_change(self, payload: StateChangePayload):
        """
        Sends a stateChange notification to the tracked connection. Must run
        on the event loop; the pin registry schedules it with
        `call_soon_threadsafe`. Dropped when no connection is tracked.
        """
        connection = self._connection
        if connection is None:
            self._logger.debug(f"No active connection, dropping state change of {payload.pin_name}")
            return

        reply = Reply(
            message_type=MessageType.STATE_CHANGE,
            message_id=str(uuid.uuid4()) if self.generate_id else NO_MESSAGE_ID,
            data=payload,
        )
        task = asyncio.ensure_future(self._send(connection, reply.to_json()))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    async def _send(self, connection: ServerConnection, message: str):
        try:
            await connection.send(message)
            self._logger.info(f"Sending notification {message}")
        except ConnectionClosed as e:
            self._logger.warning(f"Dropped notification, connection closed: {e}")
