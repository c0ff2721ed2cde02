"""
WebSocket Client Connection and Request/Reply Management.

This module provides:
- A wrapper around the `websockets` asyncio client for talking to the GPIO server.
- Request/reply correlation: each request carries a generated messageId and
  the matching reply resolves the caller's future.
- Dispatch of unsolicited `stateChange` notifications to registered listeners.
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional
import uuid

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

StateChangeListener = Callable[[str, str], None]


class RemoteGpioError(Exception):
    """Raised when the server answers a request with an `error` reply."""

    def __init__(self, error_string: str, reply: Optional[Dict[str, Any]] = None):
        self.error_string = error_string
        self.reply = reply
        super().__init__(error_string)


class GpioClient:
    uri: str
    timeout: float
    _connection: Optional[ClientConnection]
    _reader_task: Optional[asyncio.Task]
    _pending: Dict[str, asyncio.Future]
    _listeners: List[StateChangeListener]

    """
    Async client for the GPIO server. Use as `async with GpioClient(uri) as client:`.
    """
    def __init__(self, uri: str, timeout: float = 5.0):
        self.uri = uri
        self.timeout = timeout
        self._connection = None
        self._reader_task = None
        self._pending = {}
        self._listeners = []

    async def __aenter__(self) -> "GpioClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def connect(self):
        self._connection = await connect(self.uri)
        self._reader_task = asyncio.create_task(self._reader_loop())
        logger.info(f"Connected to GPIO server at {self.uri}")

    async def close(self):
        if self._connection is not None:
            await self._connection.close()
        if self._reader_task is not None:
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._connection = None
        self._reader_task = None

    def add_state_change_listener(self, listener: StateChangeListener):
        """`listener(pin_name, edge)` is called for every stateChange notification."""
        self._listeners.append(listener)

    def remove_state_change_listener(self, listener: StateChangeListener):
        self._listeners.remove(listener)

    async def request(self, command: str, params: Optional[Dict[str, Any]] = None,
                      timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Sends one command and waits for the reply with the same messageId.
        Raises RemoteGpioError for an `error` reply and asyncio.TimeoutError
        if nothing arrives in time.
        """
        if self._connection is None:
            raise RuntimeError("GpioClient is not connected")

        message_id = str(uuid.uuid4())
        message: Dict[str, Any] = {"command": command, "messageId": message_id}
        if params is not None:
            message["params"] = params

        future = asyncio.get_running_loop().create_future()
        self._pending[message_id] = future
        try:
            await self._connection.send(json.dumps(message))
            reply = await asyncio.wait_for(future, timeout or self.timeout)
        finally:
            self._pending.pop(message_id, None)

        if reply.get("messageType") == "error":
            raise RemoteGpioError(reply.get("data", {}).get("errorString", ""), reply)
        return reply

    async def _reader_loop(self):
        try:
            async for raw in self._connection:
                try:
                    reply = json.loads(raw)
                except ValueError:
                    logger.error(f"Received undecodable frame: {raw!r}")
                    continue
                self._route(reply)
        except ConnectionClosed as e:
            logger.warning(f"Connection to GPIO server lost: {e}")
        finally:
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(ConnectionError("connection to GPIO server closed"))

    def _route(self, reply: Dict[str, Any]):
        if reply.get("messageType") == "stateChange":
            data = reply.get("data", {})
            for listener in list(self._listeners):
                try:
                    listener(data.get("pinName"), data.get("edge"))
                except Exception as e:
                    logger.error(f"State change listener failed: {e}")
            return

        future = self._pending.get(reply.get("messageId"))
        if future is None or future.done():
            logger.debug(f"Uncorrelated reply: {reply}")
            return
        future.set_result(reply)

    # --- Commands ---

    async def set_state(self, pin_name: str, state: bool):
        await self.request("setState", {"pinName": pin_name, "state": state})

    async def toggle_state(self, pin_name: str) -> bool:
        reply = await self.request("toggleState", {"pinName": pin_name})
        return reply["data"]["state"]

    async def read_state(self, pin_name: str) -> bool:
        reply = await self.request("readState", {"pinName": pin_name})
        return reply["data"]["state"]

    async def read_direction(self, pin_name: str) -> str:
        reply = await self.request("readDirection", {"pinName": pin_name})
        return reply["data"]["direction"]

    async def register_pin(self, pin_name: str, direction: str, edge: Optional[str] = None,
                           debounce_timeout: Optional[int] = None):
        params: Dict[str, Any] = {"pinName": pin_name, "direction": direction}
        if edge is not None:
            params["edge"] = edge
        if debounce_timeout is not None:
            params["debounceTimeout"] = debounce_timeout
        await self.request("registerPin", params)

    async def get_registered_pins(self) -> List[Dict[str, Any]]:
        reply = await self.request("getRegisteredPins")
        return reply["data"]
