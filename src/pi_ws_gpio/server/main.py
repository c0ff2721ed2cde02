"""
Main entry point for the Raspberry Pi WebSocket GPIO server.

This module is responsible for:
- Parsing command-line arguments and the YAML configuration.
- Configuring logging.
- Initializing the PinRegistry with the configured pins.
- Wiring the registry's interrupt path to the ConnectionManager.
- Managing the overall application lifecycle (start, signal-driven stop).
"""

import argparse
import asyncio
import logging
import signal
from typing import Any, Dict, Optional

from pi_ws_gpio.server.config_loader import load_config, pin_configs
from pi_ws_gpio.server.dispatcher import CommandDispatcher
from pi_ws_gpio.server.hardware import PinRegistry
from pi_ws_gpio.server.websocket import ConnectionManager

LOG_FORMAT = '%(asctime)s [%(levelname)-8s] %(name)s.%(funcName)s: %(message)s'

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGQUIT, signal.SIGTERM)


def setup_logging(config: Dict[str, Any]):
    """
    Configures the global logging settings for the entire application.
    This should be called as early as possible during startup.
    """
    log_conf = config.get('logging') or {}
    handlers = [logging.StreamHandler()]
    if log_conf.get('file'):
        handlers.append(logging.FileHandler(log_conf['file']))

    logging.basicConfig(
        level=str(log_conf.get('level', 'INFO')).upper(),
        format=LOG_FORMAT,
        handlers=handlers,
    )

logger = logging.getLogger(__name__)

async def shutdown(signal_name: str, connection_manager: ConnectionManager, registry: PinRegistry,
                   stop_event: asyncio.Event):
    """Graceful shutdown handler."""
    logger.info(f"Received exit signal {signal_name}...")

    # Stop accepting commands before the pins go away
    await connection_manager.stop()

    # Leave the hardware in a safe state
    registry.shutdown_all()

    stop_event.set()

async def main_application_runner(config_path: Optional[str] = None):
    config: Dict[str, Any] = load_config(config_path)
    setup_logging(config)
    logger.info("Starting GPIO WebSocket server...")

    loop = asyncio.get_running_loop()

    # Instantiate ConnectionManager first so the registry can publish through it
    connection_manager = ConnectionManager(config=config)

    registry = PinRegistry(async_loop=loop, publish_callback=connection_manager.publish_state_change)
    registry.register_pins(pin_configs(config))

    connection_manager.handler = CommandDispatcher(registry)
    await connection_manager.start()

    stop_event = asyncio.Event()
    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(
            sig,
            lambda s=sig: asyncio.create_task(shutdown(s.name, connection_manager, registry, stop_event))
        )

    logger.info("GPIO server is fully operational. Press Ctrl+C to exit.")

    try:
        await stop_event.wait()
    finally:
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)
    logger.info("GPIO server stopped.")

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pi-ws-gpio", description="Remote GPIO control over WebSocket")
    parser.add_argument("-c", "--config", default=None,
                        help="path to config.yaml (default: $PI_WS_GPIO_CONFIG or the bundled file)")
    return parser.parse_args(argv)

def run(argv=None):
    args = parse_args(argv)
    try:
        asyncio.run(main_application_runner(args.config))
    except KeyboardInterrupt:
        # Handled by the signal handler, but good to catch here just in case.
        pass

if __name__ == "__main__":
    run()
