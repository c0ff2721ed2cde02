"""
Exceptions raised by the GPIO server components.
"""


class GpioServerError(Exception):
    """Base class for all errors raised by the server package."""


class PinNotMappedError(GpioServerError):
    """Raised when a logical pin name has no hardware pin number."""

    def __init__(self, pin_name: str):
        self.pin_name = pin_name
        super().__init__(f"pin {pin_name} could not be mapped to a hardware pin")


class MalformedMessageError(GpioServerError):
    """Raised when a request passes validation but its parameters are unusable."""
