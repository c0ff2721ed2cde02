"""
Configuration Loader.

Responsible for locating and reading the config.yaml file and for filling
in defaults for the server and logging sections.
"""
import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from pi_ws_gpio.server.models import PinConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PI_WS_GPIO_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULTS: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 9080,
        "per_message_deflate": False,
    },
    "generate_id": False,
    "logging": {
        "level": "INFO",
        "file": None,
    },
    "pins": [],
}


def resolve_config_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """
    Picks the config file: explicit argument, then $PI_WS_GPIO_CONFIG,
    then config.yaml next to the server package.
    """
    if config_path:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Loads the YAML configuration file and merges it over the defaults.
    """
    path = resolve_config_path(config_path)
    config: Dict[str, Any] = copy.deepcopy(DEFAULTS)
    if not path.exists():
        logger.warning(f"Config file not found at {path}. Using defaults.")
        return config

    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {path}")
    except Exception as e:
        logger.error(f"Failed to parse config file: {e}")
        raise

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def pin_configs(config: Dict[str, Any]) -> List[PinConfig]:
    """
    Builds the startup pin list. Invalid entries are logged and skipped.
    """
    pins = []
    for entry in config.get("pins") or []:
        try:
            pins.append(PinConfig.from_params(entry))
        except (AttributeError, ValueError) as e:
            logger.error(f"Invalid pin config {entry}: {e}")
    return pins
