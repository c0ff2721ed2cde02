import pytest

from pi_ws_gpio.server.models import (
    AckPayload,
    Direction,
    Edge,
    MessageType,
    PinConfig,
    PinState,
    Reply,
    StateChangePayload,
    error_reply,
    registered_pins_reply,
)

"""
Tests for the wire format of pin models and reply envelopes.
"""

def test_pin_config_from_params():
    config = PinConfig.from_params({"pinName": "GPIO17", "direction": "in", "edge": "both",
                                    "debounceTimeout": 10})
    assert config == PinConfig(pin_name="GPIO17", direction=Direction.IN, edge=Edge.BOTH,
                               debounce_timeout=10)


@pytest.mark.parametrize("debounce", [True, "10", 1.5, None])
def test_non_integer_debounce_is_ignored(debounce):
    config = PinConfig.from_params({"pinName": "GPIO17", "direction": "in", "debounceTimeout": debounce})
    assert config.debounce_timeout is None


@pytest.mark.parametrize("params", [
    {"direction": "in"},
    {"pinName": "GPIO17"},
    {"pinName": "GPIO17", "direction": "IN"},
    {"pinName": "GPIO17", "direction": "in", "edge": "sideways"},
])
def test_invalid_pin_config(params):
    with pytest.raises(ValueError):
        PinConfig.from_params(params)


def test_pin_state_omits_absent_edge():
    state = PinState(pin_name="GPIO21", direction=Direction.OUT, state=True)
    assert state.to_json() == '{"pinName":"GPIO21","direction":"out","state":true}'


def test_ack_reply_wire_format():
    reply = Reply(message_type=MessageType.ACK,
                  data=AckPayload(command="toggleState", pin_name="GPIO21", state=False))
    assert reply.to_json() == '{"messageType":"ack","data":{"command":"toggleState","pinName":"GPIO21","state":false}}'


def test_error_reply_with_message_id():
    assert error_reply("boom", "id").to_json() == '{"messageType":"error","messageId":"id","data":{"errorString":"boom"}}'


def test_null_message_id_is_kept():
    assert error_reply("boom", None).to_json() == '{"messageType":"error","messageId":null,"data":{"errorString":"boom"}}'


def test_empty_registered_pins():
    assert registered_pins_reply([]).to_json() == '{"messageType":"registeredPins","data":[]}'


def test_state_change_from_level():
    assert StateChangePayload.from_level("GPIO17", 1).edge == Edge.RISING
    assert StateChangePayload.from_level("GPIO17", 0).edge == Edge.FALLING
