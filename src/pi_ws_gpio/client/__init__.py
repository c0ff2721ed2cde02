"""
Client-side components for remote Python applications.
This package provides an asyncio WebSocket client and `gpiozero`-like
stubs that translate method calls into requests to the GPIO server.
"""
