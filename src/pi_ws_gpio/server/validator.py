"""
Inbound Message Validation.

Checks a decoded message against the command whitelist and the
per-command parameter requirements before anything is dispatched.
"""
from dataclasses import dataclass
from typing import Any, FrozenSet, Tuple

from pi_ws_gpio.server.models import Command

COMMANDS: FrozenSet[str] = frozenset(command.value for command in Command)


@dataclass(frozen=True)
class Requirement:
    """`field` must be present in params, with one of `types`, for every command in `commands`."""
    field: str
    commands: FrozenSet[str]
    types: Tuple[type, ...] = (object,)


# Extend this table to add parameter requirements; dispatch is unaffected.
REQUIREMENTS: Tuple[Requirement, ...] = (
    Requirement("state", frozenset({Command.SET_STATE.value}), (bool,)),
    Requirement("direction", frozenset({Command.REGISTER_PIN.value}), (str,)),
)


def validate_message(message: Any) -> bool:
    """
    Returns True if `message` is a well-formed request. Never mutates it.
    """
    if not isinstance(message, dict):
        return False

    command = message.get("command")
    if not isinstance(command, str) or not command:
        return False
    if command not in COMMANDS:
        return False

    # getRegisteredPins is the only command without a pin target
    if "params" not in message:
        return command == Command.GET_REGISTERED_PINS.value

    params = message["params"]
    if not isinstance(params, dict) or not isinstance(params.get("pinName"), str):
        return False

    for requirement in REQUIREMENTS:
        if command not in requirement.commands:
            continue
        if requirement.field not in params:
            return False
        if not isinstance(params[requirement.field], requirement.types):
            return False

    return True
