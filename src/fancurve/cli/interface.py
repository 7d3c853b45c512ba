"""
Command Line Interface Module

This module provides the command-line entry point that wires the
temperature source, fan actuator, delivery loop and HTTP API together.
"""

import argparse
import logging
import sys
from typing import Any, Dict, Optional, Tuple

from ..config import load_settings, setup_config
from ..control import ConfigRepository, CurveRepository, CurveState, DeliveryManager
from ..errors import ActuatorError, FanCurveError
from ..hardware import (
    Actuator,
    CombinedTemperatureReader,
    HTTPActuator,
    IPMITemperatureReader,
    SerialActuator,
    TemperatureSource,
    ThermalZoneReader
)
from ..web import create_app

logger = logging.getLogger(__name__)

PACKAGE_LOGGERS = ['fancurve.control', 'fancurve.hardware', 'fancurve.web']


def configure_logging(debug: bool = False) -> None:
    """Configure log format and levels"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    level = logging.DEBUG if debug else logging.INFO
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)
    # Per-request lines from the development server are noise at INFO
    if not debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)


def build_sensor(settings: Dict[str, Any]) -> TemperatureSource:
    """Create the temperature source described by settings"""
    temp_config = settings["temperature"]
    primary = IPMITemperatureReader(
        sensor_names=temp_config["ipmi_sensors"],
        timeout=float(temp_config["timeout"])
    )
    fallback = ThermalZoneReader(temp_config["thermal_zone"])
    return CombinedTemperatureReader(primary, fallback)


def build_actuator(settings: Dict[str, Any]) -> Actuator:
    """Create the fan actuator for the configured transport"""
    transport = settings["delivery"]["transport"]
    if transport == "http":
        http_config = settings["http"]
        return HTTPActuator(http_config["url"], timeout=float(http_config["timeout"]))

    serial_config = settings["serial"]
    return SerialActuator(
        device_dir=serial_config["device_dir"],
        device_pattern=serial_config["device_pattern"],
        baud_rate=int(serial_config["baud_rate"]),
        timeout=float(serial_config["timeout"])
    )


def build_service(settings: Dict[str, Any],
                  sensor: Optional[TemperatureSource] = None,
                  actuator: Optional[Actuator] = None) -> Tuple[CurveState, CurveRepository, DeliveryManager]:
    """Create the shared state, curve store and delivery manager

    Args:
        settings: Loaded settings
        sensor: Temperature source, built from settings if omitted
        actuator: Fan actuator, built from settings if omitted

    Returns:
        Tuple of (curve state, curve repository, delivery manager)
    """
    storage = settings["storage"]
    state = CurveState(ConfigRepository(storage["config_file"]))
    curve_repository = CurveRepository(storage["curve_file"])
    manager = DeliveryManager(
        state,
        sensor or build_sensor(settings),
        actuator or build_actuator(settings),
        interval=float(settings["delivery"]["interval"])
    )
    return state, curve_repository, manager


class CLI:
    """Command-line interface handler"""

    def __init__(self):
        """Initialize CLI handler"""
        self.parser = self._create_parser()
        self.manager: Optional[DeliveryManager] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create command-line argument parser

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            description="fancurve - Temperature driven fan control with an editable curve"
        )

        parser.add_argument(
            "-c", "--config",
            help="Path to configuration file",
            default="/etc/fancurve/config.yaml"
        )

        parser.add_argument(
            "--debug",
            action="store_true",
            help="Enable debug logging"
        )

        mode = parser.add_mutually_exclusive_group()
        mode.add_argument(
            "--manual",
            type=int,
            choices=range(0, 101),
            metavar="SPEED",
            help="Send a fixed fan speed (0-100) and exit"
        )
        mode.add_argument(
            "--once",
            action="store_true",
            help="Run a single delivery cycle and exit"
        )

        return parser

    def _serve(self, settings: Dict[str, Any], state: CurveState,
               curve_repository: CurveRepository) -> None:
        """Run the delivery loop and HTTP API until interrupted"""
        app = create_app(state, curve_repository, self.manager, settings.get("static_dir"))
        server = settings["server"]

        self.manager.start()
        logger.info(f"Server starting on http://{server['host']}:{server['port']}")
        logger.info(f"Configuration auto-saves to {state.repository.path}")
        logger.info(f"Curve points auto-save to {curve_repository.path}")
        try:
            app.run(host=server["host"], port=int(server["port"]), threaded=True, use_reloader=False)
        finally:
            self.manager.stop()

    def run(self, argv=None) -> int:
        """Run the CLI interface

        Returns:
            Process exit code
        """
        args = self.parser.parse_args(argv)
        configure_logging(args.debug)

        try:
            config_path = setup_config(args.config)
            settings = load_settings(config_path)

            if args.manual is not None:
                actuator = build_actuator(settings)
                try:
                    actuator.send(args.manual)
                finally:
                    actuator.close()
                print(f"Fan speed set to {args.manual}%")
                return 0

            state, curve_repository, self.manager = build_service(settings)

            if args.once:
                return 0 if self.manager.deliver_once() else 1

            self._serve(settings, state, curve_repository)
            return 0

        except KeyboardInterrupt:
            if self.manager:
                self.manager.stop()
            print("\nExiting...")
            return 0

        except ActuatorError as e:
            logger.error(f"Fan controller error: {e}")
            return 1

        except FanCurveError as e:
            logger.error(f"Error: {e}")
            return 1


def main() -> None:
    """Main entry point"""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
