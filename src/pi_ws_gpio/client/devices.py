"""
Remote GPIO Device Stubs.

This module contains `gpiozero`-like classes (`RemoteOutputPin`,
`RemoteInputPin`) that let remote Python applications drive the Pi's
pins. Method calls are translated into requests sent through a
`GpioClient`.
"""
from typing import Callable, Optional

from pi_ws_gpio.client.connection import GpioClient


class RemoteOutputPin:
    """An output pin on the server, e.g. an LED or a relay."""

    def __init__(self, client: GpioClient, pin_name: str):
        self.client = client
        self.pin_name = pin_name

    async def setup(self):
        await self.client.register_pin(self.pin_name, "out")

    async def on(self):
        await self.client.set_state(self.pin_name, True)

    async def off(self):
        await self.client.set_state(self.pin_name, False)

    async def toggle(self) -> bool:
        return await self.client.toggle_state(self.pin_name)

    async def is_active(self) -> bool:
        return await self.client.read_state(self.pin_name)


class RemoteInputPin:
    """
    An input pin on the server, e.g. a button. `when_changed(edge)` is called
    for each stateChange notification of this pin.
    """
    when_changed: Optional[Callable[[str], None]]

    def __init__(self, client: GpioClient, pin_name: str, edge: str = "both",
                 debounce_timeout: Optional[int] = None):
        self.client = client
        self.pin_name = pin_name
        self.edge = edge
        self.debounce_timeout = debounce_timeout
        self.when_changed = None
        client.add_state_change_listener(self._on_state_change)

    async def setup(self):
        await self.client.register_pin(self.pin_name, "in", self.edge, self.debounce_timeout)

    async def is_active(self) -> bool:
        return await self.client.read_state(self.pin_name)

    def close(self):
        self.client.remove_state_change_listener(self._on_state_change)

    def _on_state_change(self, pin_name: str, edge: str):
        if pin_name == self.pin_name and self.when_changed is not None:
            self.when_changed(edge)
