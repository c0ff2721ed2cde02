"""
pi_ws_gpio

This package exposes Raspberry Pi GPIOs over a WebSocket connection
using a small JSON command/reply protocol, with asynchronous
notifications when watched input pins change.
"""
__version__ = "0.1.0"
