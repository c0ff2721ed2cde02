"""
Pin Registry and the Hardware/Async Bridge.

This module contains the `PinRegistry` class, which owns every pin the
server currently exposes. It is responsible for:
- Resolving pin names and exporting driver handles (register/unregister).
- Reading, writing and toggling pin levels synchronously.
- Subscribing input pins with an edge mode to the interrupt path and
  forwarding their callbacks onto the asyncio loop via `call_soon_threadsafe`.
- Leaving the hardware in a safe state at shutdown.
"""
import asyncio
import functools
import logging as log
from typing import Callable, Dict, Iterable, List, Optional

from pi_ws_gpio.server.driver import ExportOptions, GpioDriver, GpioHandle
from pi_ws_gpio.server.errors import PinNotMappedError
from pi_ws_gpio.server.models import Direction, Edge, PinConfig, PinState, StateChangePayload
from pi_ws_gpio.server.pin_mapper import PinNameMapper

PublishCallback = Callable[[StateChangePayload], None]


class PinRegistry:
    driver: GpioDriver
    mapper: PinNameMapper
    async_loop: Optional[asyncio.AbstractEventLoop]  # loop the interrupt path is marshalled onto
    pins: Dict[str, GpioHandle]  # insertion order is registration order
    publish_callback: Optional[PublishCallback]

    """
    Tracks registered pins by name and delegates their I/O to driver handles.
    Only touched from the event loop thread, so it holds no lock.
    """
    def __init__(self, driver: Optional[GpioDriver] = None, mapper: Optional[PinNameMapper] = None,
                 async_loop: Optional[asyncio.AbstractEventLoop] = None,
                 publish_callback: Optional[PublishCallback] = None,
                 logger: Optional[log.Logger] = None):
        self.driver = driver or GpioDriver()
        self.mapper = mapper or PinNameMapper()
        self.async_loop = async_loop
        self.publish_callback = publish_callback
        self.pins = {}
        self._logger = logger or log.getLogger(__name__)

    # --- Lifecycle ---

    def register_pin(self, config: PinConfig) -> GpioHandle:
        """
        Exports the pin described by `config` and adds it to the registry.
        Re-registering a name replaces the entry without releasing the old handle.
        Raises PinNotMappedError if the name has no hardware pin number.
        """
        pin_number = self.mapper.pin_number(config.pin_name)
        if pin_number is None:
            raise PinNotMappedError(config.pin_name)

        options = None
        debounce = config.debounce_timeout
        if config.direction == Direction.IN and isinstance(debounce, int) and debounce >= 0:
            options = ExportOptions(debounce_timeout=debounce)

        handle = self.driver.export(pin_number, config.direction, config.edge, options)

        if config.direction == Direction.IN and config.edge not in (None, Edge.NONE):
            handle.watch(functools.partial(self.interrupt_handler, config.pin_name))

        self.pins[config.pin_name] = handle
        self._logger.info(f"Registered {config.pin_name} (pin {pin_number}, {config.direction.value})")
        return handle

    def register_pins(self, configs: Iterable[PinConfig]):
        """
        Registers the pins configured at startup. A pin that cannot be
        registered is logged and skipped.
        """
        for config in configs:
            try:
                self.register_pin(config)
            except Exception as e:
                self._logger.error(f"Failed to register {config.pin_name}: {e}")

    def unregister_pin(self, pin_name: str):
        """Drives an output low, releases the pin and forgets it. No-op if absent."""
        handle = self.get_pin(pin_name)
        if handle is None:
            return
        if handle.direction() == Direction.OUT:
            handle.write_sync(0)
        handle.unexport()
        del self.pins[pin_name]
        self._logger.info(f"Unregistered {pin_name}")

    def shutdown_all(self):
        """
        Drives every output low and releases every pin. Used at process exit;
        a failure on one pin does not stop the rest.
        """
        for pin_name, handle in list(self.pins.items()):
            try:
                if handle.direction() == Direction.OUT:
                    handle.write_sync(0)
                handle.unexport()
            except Exception as e:
                self._logger.error(f"Failed to release {pin_name} during shutdown: {e}")
        self.pins.clear()
        self._logger.info("All pins released.")

    # --- Queries ---

    def pin_is_registered(self, pin_name: str) -> bool:
        return pin_name in self.pins

    def get_pin(self, pin_name: str) -> Optional[GpioHandle]:
        return self.pins.get(pin_name)

    def get_pin_direction(self, pin_name: str) -> Optional[Direction]:
        handle = self.get_pin(pin_name)
        if handle is None:
            return None
        return handle.direction()

    def get_pin_edge(self, pin_name: str) -> Optional[Edge]:
        handle = self.get_pin(pin_name)
        if handle is None or handle.direction() != Direction.IN:
            return None
        return handle.edge()

    def get_pin_state(self, pin_name: str) -> Optional[bool]:
        handle = self.get_pin(pin_name)
        if handle is None:
            return None
        return handle.read_sync() == 1

    def get_registered_pins(self) -> List[PinState]:
        """Snapshot of all registered pins in registration order with freshly read levels."""
        return [
            PinState(
                pin_name=pin_name,
                direction=handle.direction(),
                edge=handle.edge() if handle.direction() == Direction.IN else None,
                state=handle.read_sync() == 1,
            )
            for pin_name, handle in self.pins.items()
        ]

    # --- Mutations ---

    def set_pin_state(self, pin_name: str, state: bool) -> Optional[bool]:
        """
        Writes `state` to the pin. Direction is not checked here; writing an
        input is left to the driver.
        """
        handle = self.get_pin(pin_name)
        if handle is None:
            return None
        handle.write_sync(1 if state else 0)
        return state

    def toggle_pin_state(self, pin_name: str) -> Optional[bool]:
        handle = self.get_pin(pin_name)
        if handle is None:
            return None
        new_value = 0 if handle.read_sync() else 1
        handle.write_sync(new_value)
        return new_value == 1

    # --- Interrupt path ---

    def interrupt_handler(self, pin_name: str, value: int):
        """
        Watch callback of an input pin. It may run in a driver thread, so the
        notification is scheduled onto the asyncio loop rather than sent here.
        """
        if self.publish_callback is None:
            self._logger.debug(f"No publisher for state change on {pin_name}")
            return

        event = StateChangePayload.from_level(pin_name, value)
        try:
            if self.async_loop is not None:
                self.async_loop.call_soon_threadsafe(self.publish_callback, event)
            else:
                self.publish_callback(event)
            self._logger.debug(f"State change scheduled: {event.to_json()}")
        except Exception as e:
            self._logger.error(f"Error publishing state change of {pin_name}: {e}")
