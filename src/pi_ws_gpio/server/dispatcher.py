"""
Command Dispatch and Reply Construction.

This module is responsible for:
- Decoding inbound JSON payloads and running them through the validator.
- Rejecting commands addressed to pins that are not registered.
- Executing commands against the `PinRegistry`.
- Building the reply (or error) envelope, echoing the request's messageId,
  and sending it back on the connection the request arrived on.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Union

from pi_ws_gpio.server.errors import MalformedMessageError, PinNotMappedError
from pi_ws_gpio.server.hardware import PinRegistry
from pi_ws_gpio.server.models import (
    AckPayload,
    Command,
    DirectionPayload,
    NO_MESSAGE_ID,
    MessageType,
    PinConfig,
    Reply,
    StatePayload,
    error_reply,
    registered_pins_reply,
)
from pi_ws_gpio.server.validator import validate_message

MALFORMED_MESSAGE = "request message was malformed"


class Connection(Protocol):
    async def send(self, message: str) -> None: ...


class MessageHandler(Protocol):
    """Anything the connection manager can hand inbound payloads to."""
    async def handle_message(self, connection: Connection, payload: Union[str, bytes]) -> None: ...


def malformed_message_error(message_id: Any = NO_MESSAGE_ID) -> Reply:
    return error_reply(MALFORMED_MESSAGE, message_id)


def pin_not_registered_error(pin_name: str, message_id: Any = NO_MESSAGE_ID) -> Reply:
    return error_reply(f"pin {pin_name} is not registered", message_id)


class CommandDispatcher:
    registry: PinRegistry
    handlers: Dict[str, Callable[..., Reply]]

    """
    Turns validated requests into registry calls and reply envelopes.
    """
    def __init__(self, registry: PinRegistry, logger: Optional[logging.Logger] = None):
        self.registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self.handlers = {
            Command.SET_STATE.value: self._set_state,
            Command.TOGGLE_STATE.value: self._toggle_state,
            Command.READ_STATE.value: self._read_state,
            Command.READ_DIRECTION.value: self._read_direction,
            Command.REGISTER_PIN.value: self._register_pin,
            Command.GET_REGISTERED_PINS.value: self._get_registered_pins,
        }

    async def handle_message(self, connection: Connection, payload: Union[str, bytes]) -> None:
        """Dispatches `payload` and sends the reply to `connection` only."""
        reply = self.dispatch(payload)
        self._logger.info(f"Sending response {reply}")
        await connection.send(reply)

    def dispatch(self, payload: Union[str, bytes]) -> str:
        """
        Processes one raw inbound payload and returns the serialized reply.
        Never raises: every failure becomes an error reply.
        """
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            message = json.loads(payload)
        except (ValueError, RecursionError):
            # RecursionError: nesting deeper than the decoder can follow
            self._logger.warning(f"Could not decode message {payload[:80]!r}")
            return malformed_message_error().to_json()

        message_id = NO_MESSAGE_ID
        if isinstance(message, dict):
            message_id = message.get("messageId", NO_MESSAGE_ID)
        if not validate_message(message):
            self._logger.warning(f"Rejected malformed message {payload}")
            return malformed_message_error(message_id).to_json()

        self._logger.info(f"Received command {payload}")

        command: str = message["command"]
        params: Dict[str, Any] = message.get("params") or {}
        pin_name: str = params.get("pinName", "")
        state: bool = params.get("state", False)

        # registerPin is exempt: it creates the registration
        if pin_name and not self.registry.pin_is_registered(pin_name):
            if command != Command.REGISTER_PIN.value:
                return pin_not_registered_error(pin_name, message_id).to_json()

        try:
            reply = self.handlers[command](pin_name=pin_name, state=state, params=params,
                                           message_id=message_id)
        except PinNotMappedError as e:
            self._logger.warning(str(e))
            reply = error_reply(str(e), message_id)
        except MalformedMessageError as e:
            self._logger.warning(f"Invalid parameters for {command}: {e}")
            reply = malformed_message_error(message_id)
        except Exception as e:
            self._logger.exception(f"Error executing command '{command}' on pin '{pin_name}'")
            reply = error_reply(f"command {command} failed: {e}", message_id)

        return reply.to_json()

    # --- Command handlers ---

    def _set_state(self, *, pin_name: str, state: bool, message_id: Any, **_) -> Reply:
        self.registry.set_pin_state(pin_name, state)
        return Reply(message_type=MessageType.ACK, message_id=message_id,
                     data=AckPayload(command=Command.SET_STATE.value, pin_name=pin_name))

    def _toggle_state(self, *, pin_name: str, message_id: Any, **_) -> Reply:
        new_state = self.registry.toggle_pin_state(pin_name)
        return Reply(message_type=MessageType.ACK, message_id=message_id,
                     data=AckPayload(command=Command.TOGGLE_STATE.value, pin_name=pin_name,
                                     state=new_state))

    def _read_state(self, *, pin_name: str, message_id: Any, **_) -> Reply:
        state = self.registry.get_pin_state(pin_name)
        return Reply(message_type=MessageType.STATE, message_id=message_id,
                     data=StatePayload(pin_name=pin_name, state=state))

    def _read_direction(self, *, pin_name: str, message_id: Any, **_) -> Reply:
        direction = self.registry.get_pin_direction(pin_name)
        return Reply(message_type=MessageType.DIRECTION, message_id=message_id,
                     data=DirectionPayload(pin_name=pin_name, direction=direction))

    def _register_pin(self, *, pin_name: str, params: Dict[str, Any], message_id: Any,
                      **_) -> Reply:
        try:
            config = PinConfig.from_params(params)
        except ValueError as e:
            raise MalformedMessageError(str(e)) from e
        self.registry.register_pin(config)
        return Reply(message_type=MessageType.ACK, message_id=message_id,
                     data=AckPayload(command=Command.REGISTER_PIN.value, pin_name=pin_name))

    def _get_registered_pins(self, *, message_id: Any, **_) -> Reply:
        return registered_pins_reply(self.registry.get_registered_pins(), message_id)
