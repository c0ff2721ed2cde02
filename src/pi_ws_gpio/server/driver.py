"""
Hardware Driver Boundary.

Thin adapter over `gpiozero` pin objects offering the primitives the pin
registry works with: export, synchronous read/write, edge watching and
unexport. On a Pi the process-wide gpiozero pin factory is used; tests
inject `gpiozero.pins.mock.MockFactory`.
"""
from dataclasses import dataclass
import logging
from typing import Callable, Optional

from gpiozero import Device
from gpiozero.pins import Factory, Pin

from pi_ws_gpio.server.models import Direction, Edge

logger = logging.getLogger(__name__)

WatchCallback = Callable[[int], None]

_PIN_FUNCTIONS = {
    Direction.IN: "input",
    Direction.OUT: "output",
}


@dataclass(frozen=True)
class ExportOptions:
    """Optional export settings; only applied to inputs."""
    debounce_timeout: Optional[int] = None  # milliseconds


class GpioHandle:
    """
    An exported pin. All calls are synchronous and return quickly.
    """
    pin: Pin
    _direction: Direction
    _edge: Optional[Edge]
    _callback: Optional[WatchCallback]

    def __init__(self, pin: Pin, direction: Direction, edge: Optional[Edge] = None):
        self.pin = pin
        self._direction = direction
        self._edge = edge
        self._callback = None

    def direction(self) -> Direction:
        return self._direction

    def edge(self) -> Optional[Edge]:
        return self._edge

    def read_sync(self) -> int:
        return 1 if self.pin.state else 0

    def write_sync(self, value: int):
        self.pin.state = 1 if value else 0

    def watch(self, callback: WatchCallback):
        """
        Calls `callback(value)` on every configured edge. gpiozero invokes it
        from its own thread.
        """
        # gpiozero only keeps a weak reference to when_changed, so the
        # callback lives on the handle and a bound method is registered.
        self._callback = callback
        self.pin.when_changed = self._on_changed

    def _on_changed(self, ticks, state):
        if self._callback is not None:
            self._callback(1 if state else 0)

    def unexport(self):
        self._callback = None
        self.pin.when_changed = None
        self.pin.close()


class GpioDriver:
    pin_factory: Factory

    """
    Exports pins through a gpiozero pin factory.
    """
    def __init__(self, pin_factory: Optional[Factory] = None):
        if pin_factory is None:
            if Device.pin_factory is None:
                Device.pin_factory = Device._default_pin_factory()
            pin_factory = Device.pin_factory
        self.pin_factory = pin_factory

    def export(self, pin_number: int, direction: Direction, edge: Optional[Edge] = None,
               options: Optional[ExportOptions] = None) -> GpioHandle:
        """
        Claims `pin_number` and configures it. Edge and debounce settings are
        only applied to inputs.
        """
        pin = self.pin_factory.pin(pin_number)
        pin.function = _PIN_FUNCTIONS[direction]

        if direction == Direction.IN:
            if options is not None and options.debounce_timeout is not None:
                pin.bounce = options.debounce_timeout / 1000
            if edge is not None:
                pin.edges = edge.value
        else:
            edge = None

        logger.debug(f"Exported pin {pin_number} as {direction.value} (edge={edge}, options={options})")
        return GpioHandle(pin, direction, edge)
