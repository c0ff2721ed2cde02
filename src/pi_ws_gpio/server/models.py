"""
Data Models for Pins, Commands and WebSocket Payloads.

Defines the pin configuration types shared by the registry and the
dispatcher, and a hierarchy of reply payloads wrapped by a single
`Reply` envelope that is serialized onto the wire.
"""
from dataclasses import dataclass, field, fields
from enum import Enum
import json
import re
from typing import Any, Dict, List, Optional


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class Edge(str, Enum):
    NONE = "none"
    RISING = "rising"
    FALLING = "falling"
    BOTH = "both"


class Command(str, Enum):
    SET_STATE = "setState"
    TOGGLE_STATE = "toggleState"
    READ_STATE = "readState"
    READ_DIRECTION = "readDirection"
    REGISTER_PIN = "registerPin"
    GET_REGISTERED_PINS = "getRegisteredPins"


class MessageType(str, Enum):
    ACK = "ack"
    STATE = "state"
    DIRECTION = "direction"
    REGISTERED_PINS = "registeredPins"
    STATE_CHANGE = "stateChange"
    ERROR = "error"


def _camel_case(name: str) -> str:
    return re.sub(r"_([a-z])", lambda match: match.group(1).upper(), name)


def _wire_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, WireModel):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_wire_value(item) for item in value]
    return value


class WireModel:
    """
    Mixin for dataclasses that travel over the socket.

    Field names are converted to camelCase and fields holding None are left
    out, so optional members simply do not appear in the JSON.
    """
    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[_camel_case(f.name)] = _wire_value(value)
        return result

    def to_json(self) -> str:
        """Converts the object to a compact JSON string."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


# --- Pin configuration ---

@dataclass(frozen=True, kw_only=True)
class PinConfig(WireModel):
    """Requested configuration of a pin. `edge` and `debounce_timeout` only apply to inputs."""
    pin_name: str
    direction: Direction
    edge: Optional[Edge] = None
    debounce_timeout: Optional[int] = None  # milliseconds

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "PinConfig":
        """
        Builds a PinConfig from camelCase message params or a config file entry.
        Raises ValueError for a missing name, an unknown direction or edge.
        """
        pin_name = params.get("pinName")
        if not isinstance(pin_name, str) or not pin_name:
            raise ValueError(f"invalid pinName: {pin_name!r}")

        direction = Direction(params.get("direction"))
        edge = params.get("edge")
        # A debounce value that is not an integer is ignored, not rejected
        debounce = params.get("debounceTimeout")
        if isinstance(debounce, bool) or not isinstance(debounce, int):
            debounce = None

        return cls(
            pin_name=pin_name,
            direction=direction,
            edge=Edge(edge) if edge is not None else None,
            debounce_timeout=debounce,
        )


@dataclass(frozen=True, kw_only=True)
class PinState(PinConfig):
    """A registered pin together with its sampled logic level (True = high)."""
    state: bool


# --- Reply payloads ---

@dataclass(frozen=True, kw_only=True)
class AckPayload(WireModel):
    command: str
    pin_name: str
    state: Optional[bool] = None


@dataclass(frozen=True, kw_only=True)
class StatePayload(WireModel):
    pin_name: str
    state: Optional[bool]


@dataclass(frozen=True, kw_only=True)
class DirectionPayload(WireModel):
    pin_name: str
    direction: Optional[Direction]


@dataclass(frozen=True, kw_only=True)
class ErrorPayload(WireModel):
    error_string: str


@dataclass(frozen=True, kw_only=True)
class StateChangePayload(WireModel):
    """Unsolicited notification that a watched input changed level."""
    pin_name: str
    edge: Edge

    @classmethod
    def from_level(cls, pin_name: str, value: int) -> "StateChangePayload":
        return cls(pin_name=pin_name, edge=Edge.RISING if value else Edge.FALLING)


# --- The Envelope ---

# Marks a reply whose request carried no messageId; a null messageId is echoed as null
NO_MESSAGE_ID = object()


@dataclass(frozen=True, kw_only=True)
class Reply(WireModel):
    """
    Outbound envelope. `message_id` is echoed from the request verbatim and is
    left out of the JSON only when the request had none.
    """
    message_type: MessageType
    message_id: Any = NO_MESSAGE_ID
    data: Any = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"messageType": self.message_type.value}
        if self.message_id is not NO_MESSAGE_ID:
            result["messageId"] = self.message_id
        result["data"] = _wire_value(self.data)
        return result


def error_reply(error_string: str, message_id: Any = NO_MESSAGE_ID) -> Reply:
    return Reply(
        message_type=MessageType.ERROR,
        message_id=message_id,
        data=ErrorPayload(error_string=error_string),
    )


def registered_pins_reply(pins: List[PinState], message_id: Any = NO_MESSAGE_ID) -> Reply:
    return Reply(message_type=MessageType.REGISTERED_PINS, message_id=message_id, data=pins)
