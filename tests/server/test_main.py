import pytest
import asyncio
import logging
import signal
from unittest.mock import patch, AsyncMock, MagicMock

# Import the function we want to test
from pi_ws_gpio.server.main import main_application_runner, parse_args, setup_logging, shutdown

@pytest.fixture
def mock_config():
    """Provides a fake configuration dictionary."""
    return {
        "server": {"host": "127.0.0.1", "port": 9080},
        "logging": {"level": "DEBUG", "file": None},
        "pins": [{"pinName": "GPIO21", "direction": "out"}],
    }

@pytest.mark.asyncio
@patch('pi_ws_gpio.server.main.setup_logging')
@patch('pi_ws_gpio.server.main.load_config')
@patch('pi_ws_gpio.server.main.PinRegistry')
@patch('pi_ws_gpio.server.main.ConnectionManager')
@patch('pi_ws_gpio.server.main.CommandDispatcher')
async def test_main_orchestrates_startup_and_wiring(
    MockCommandDispatcher,
    MockConnectionManager,
    MockPinRegistry,
    mock_load_config,
    mock_setup_logging,
    mock_config
):
    """
    Tests that main_application_runner instantiates and wires the registry,
    dispatcher and connection manager based on the configuration.
    """
    mock_load_config.return_value = mock_config

    mock_registry = MagicMock()
    mock_manager = MagicMock()
    mock_manager.start = AsyncMock()
    mock_manager.stop = AsyncMock()
    MockPinRegistry.return_value = mock_registry
    MockConnectionManager.return_value = mock_manager

    # main_application_runner waits for a shutdown signal, so run it in the background
    main_task = asyncio.create_task(main_application_runner("custom.yaml"))
    await asyncio.sleep(0.1)

    mock_load_config.assert_called_once_with("custom.yaml")
    mock_setup_logging.assert_called_once_with(mock_config)

    # The registry publishes interrupts through the connection manager
    _, kwargs = MockPinRegistry.call_args
    assert kwargs['publish_callback'] == mock_manager.publish_state_change
    assert kwargs['async_loop'] is asyncio.get_running_loop()

    registered = mock_registry.register_pins.call_args.args[0]
    assert [pin.pin_name for pin in registered] == ["GPIO21"]

    MockCommandDispatcher.assert_called_once_with(mock_registry)
    assert mock_manager.handler == MockCommandDispatcher.return_value
    mock_manager.start.assert_awaited_once()

    main_task.cancel()
    try:
        await main_task
    except asyncio.CancelledError:
        pass


@pytest.mark.asyncio
async def test_shutdown_sequence():
    """
    Tests that the shutdown handler stops the server before releasing pins.
    """
    order = []
    mock_manager = MagicMock()
    mock_manager.stop = AsyncMock(side_effect=lambda: order.append("stop"))
    mock_registry = MagicMock()
    mock_registry.shutdown_all = MagicMock(side_effect=lambda: order.append("shutdown_all"))
    stop_event = asyncio.Event()

    await shutdown("SIGTERM", mock_manager, mock_registry, stop_event)

    assert order == ["stop", "shutdown_all"]
    assert stop_event.is_set()


@pytest.mark.asyncio
@patch('pi_ws_gpio.server.main.setup_logging')
@patch('pi_ws_gpio.server.main.load_config')
@patch('pi_ws_gpio.server.main.PinRegistry')
@patch('pi_ws_gpio.server.main.ConnectionManager')
async def test_signal_releases_pins(MockConnectionManager, MockPinRegistry, mock_load_config,
                                    mock_setup_logging, mock_config):
    """
    A termination signal must end the runner with every pin released.
    """
    mock_load_config.return_value = mock_config
    mock_manager = MagicMock()
    mock_manager.start = AsyncMock()
    mock_manager.stop = AsyncMock()
    MockConnectionManager.return_value = mock_manager

    loop = asyncio.get_running_loop()
    handlers = {}
    with patch.object(loop, 'add_signal_handler', side_effect=lambda sig, cb: handlers.setdefault(sig, cb)), \
            patch.object(loop, 'remove_signal_handler'):
        main_task = asyncio.create_task(main_application_runner())
        await asyncio.sleep(0.1)

        assert set(handlers) == {signal.SIGINT, signal.SIGQUIT, signal.SIGTERM}
        handlers[signal.SIGQUIT]()
        await asyncio.wait_for(main_task, timeout=1)

    mock_manager.stop.assert_awaited_once()
    MockPinRegistry.return_value.shutdown_all.assert_called_once()


def test_setup_logging_adds_file_handler(tmp_path):
    log_file = tmp_path / "gpio.log"
    with patch('pi_ws_gpio.server.main.logging.basicConfig') as mock_basic_config:
        setup_logging({"logging": {"level": "debug", "file": str(log_file)}})

    _, kwargs = mock_basic_config.call_args
    assert kwargs['level'] == "DEBUG"
    assert any(isinstance(h, logging.FileHandler) for h in kwargs['handlers'])
    for handler in kwargs['handlers']:
        handler.close()


def test_parse_args():
    assert parse_args([]).config is None
    assert parse_args(["--config", "/etc/gpio.yaml"]).config == "/etc/gpio.yaml"
