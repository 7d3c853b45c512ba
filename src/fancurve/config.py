"""
Settings Module

Runtime settings are kept in a YAML file. A missing file is created with
the defaults below; missing keys fall back to them section by section.
"""

import copy
import logging
import os
from typing import Any, Dict

import yaml

from .errors import ConfigIOError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 8080
    },
    "storage": {
        "config_file": "config.json",
        "curve_file": "curve.json"
    },
    "delivery": {
        "interval": 1.0,
        "transport": "serial"
    },
    "serial": {
        "device_dir": "/dev",
        "device_pattern": "ttyUSB",
        "baud_rate": 115200,
        "timeout": 1.0
    },
    "http": {
        "url": "http://esp32.local/fan-speed",
        "timeout": 2.0
    },
    "temperature": {
        "ipmi_sensors": ["CPU1 Temp", "CPU2 Temp"],
        "thermal_zone": "/sys/class/thermal/thermal_zone0/temp",
        "timeout": 5.0
    },
    "static_dir": None
}

TRANSPORTS = ("serial", "http")


def merge_settings(loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay loaded settings on the defaults, one section deep

    Raises:
        ConfigIOError: If a section is not a mapping
    """
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    for key, value in loaded.items():
        if isinstance(settings.get(key), dict):
            if not isinstance(value, dict):
                raise ConfigIOError(f"Settings section {key!r} must be a mapping")
            settings[key].update(value)
        else:
            settings[key] = value
    return settings


def validate_settings(settings: Dict[str, Any]) -> None:
    """Check the settings the service cannot run without

    Raises:
        ConfigIOError: If a setting is invalid
    """
    transport = settings["delivery"]["transport"]
    if transport not in TRANSPORTS:
        raise ConfigIOError(f"Invalid transport {transport!r}, must be one of {', '.join(TRANSPORTS)}")

    try:
        interval = float(settings["delivery"]["interval"])
    except (TypeError, ValueError):
        raise ConfigIOError(f"Invalid delivery interval {settings['delivery']['interval']!r}")
    if interval <= 0:
        raise ConfigIOError(f"Invalid delivery interval {interval}s, must be positive")

    sensors = settings["temperature"]["ipmi_sensors"]
    if not isinstance(sensors, list):
        raise ConfigIOError("temperature.ipmi_sensors must be a list")


def setup_config(config_path: str) -> str:
    """Create the settings file with defaults if it does not exist

    Args:
        config_path: Path to settings file

    Returns:
        Path to active settings file
    """
    if not os.path.exists(config_path):
        try:
            directory = os.path.dirname(config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(config_path, "w") as f:
                yaml.safe_dump(DEFAULT_SETTINGS, f, default_flow_style=False)
        except OSError as e:
            raise ConfigIOError(f"Failed to create settings file {config_path}: {e}") from e
        logger.info(f"Created default configuration at {config_path}")
    return config_path


def load_settings(config_path: str) -> Dict[str, Any]:
    """Load and validate settings

    Args:
        config_path: Path to YAML settings file

    Returns:
        Settings dictionary with defaults filled in

    Raises:
        ConfigIOError: If the file cannot be read or is invalid
    """
    try:
        with open(config_path) as f:
            loaded = yaml.safe_load(f)
    except OSError as e:
        raise ConfigIOError(f"Failed to read settings file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigIOError(f"Invalid YAML in {config_path}: {e}") from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigIOError(f"Settings file {config_path} must contain a mapping")

    settings = merge_settings(loaded)
    validate_settings(settings)
    return settings
