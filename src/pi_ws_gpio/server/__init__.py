"""
Server-side components: pin registry, message validation, command
dispatch and the WebSocket connection manager.
"""
