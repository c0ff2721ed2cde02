"""
Pytest Configuration and Fixtures for the pi_ws_gpio project.

Hardware is simulated with gpiozero's MockFactory so the tests run on any
development machine, not just a Raspberry Pi.
"""

import logging
import sys

import pytest
from gpiozero.pins.mock import MockFactory

from pi_ws_gpio.server.dispatcher import CommandDispatcher
from pi_ws_gpio.server.driver import GpioDriver
from pi_ws_gpio.server.hardware import PinRegistry
from pi_ws_gpio.server.models import Direction, Edge, PinConfig

INPUT_PIN = "GPIO17"
OUTPUT_PIN = "GPIO21"

SEEDED_PINS = [
    PinConfig(pin_name=INPUT_PIN, direction=Direction.IN, edge=Edge.BOTH),
    PinConfig(pin_name=OUTPUT_PIN, direction=Direction.OUT),
]


class FakeConnection:
    """Stands in for a websockets connection and records what is sent."""

    def __init__(self, remote_address=("127.0.0.1", 50000)):
        self.remote_address = remote_address
        self.sent = []

    async def send(self, message):
        self.sent.append(message)


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """
    Configures the Python logging framework globally for all tests.
    Because tests bypass main.py, this ensures our logs are formatted
    and visible exactly how we want them during test runs.
    """
    formatter = logging.Formatter(fmt="%(levelname)-8s %(message)s - %(funcName)s:%(lineno)d ")
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)


@pytest.fixture
def mock_factory():
    """A fresh MockFactory per test so pin state never leaks between tests."""
    factory = MockFactory()
    yield factory
    factory.reset()


@pytest.fixture
def driver(mock_factory):
    return GpioDriver(pin_factory=mock_factory)


@pytest.fixture
def published():
    """Collects the state change payloads the registry publishes."""
    return []


@pytest.fixture
def registry(driver, published):
    """Registry pre-seeded with GPIO17 (in/both) and GPIO21 (out)."""
    registry = PinRegistry(driver=driver, publish_callback=published.append)
    registry.register_pins(SEEDED_PINS)
    yield registry
    registry.shutdown_all()


@pytest.fixture
def dispatcher(registry):
    return CommandDispatcher(registry)


@pytest.fixture
def connection():
    return FakeConnection()
