"""
Temperature Sensor Module

This module reads the system temperature that drives the fan curve, either
from BMC sensors through ipmitool or from a Linux thermal zone.
"""

import logging
import subprocess
from typing import List, Optional, Sequence

from ..errors import SensorError

logger = logging.getLogger(__name__)

DEFAULT_THERMAL_ZONE = "/sys/class/thermal/thermal_zone0/temp"
DEFAULT_IPMI_SENSORS = ["CPU1 Temp", "CPU2 Temp"]


class TemperatureSource:
    """Base class for temperature sources"""

    def read_temperature(self) -> float:
        """Read the current temperature

        Returns:
            Temperature in Celsius

        Raises:
            SensorError: If no reading is available
        """
        raise NotImplementedError


class ThermalZoneReader(TemperatureSource):
    """Reads a sysfs thermal zone reporting millidegrees Celsius"""

    def __init__(self, path: str = DEFAULT_THERMAL_ZONE):
        self.path = path

    def read_temperature(self) -> float:
        try:
            with open(self.path) as f:
                raw = f.read().strip()
        except OSError as e:
            raise SensorError(f"Failed to read temperature file {self.path}: {e}") from e

        try:
            millidegrees = int(raw)
        except ValueError as e:
            raise SensorError(f"Failed to parse temperature {raw!r} from {self.path}") from e

        temp = millidegrees / 1000.0
        logger.debug(f"Thermal zone {self.path}: {temp}°C")
        return temp


class IPMITemperatureReader(TemperatureSource):
    """Averages named BMC temperature sensors read through ipmitool.

    Each sensor is queried with ``ipmitool sensor get <name>`` and the value
    is taken from the ``Sensor Reading`` line, e.g.::

        Sensor Reading        : 45 (+/- 0) degrees C

    All sensors must return a reading, otherwise the read fails.
    """

    def __init__(self, sensor_names: Optional[Sequence[str]] = None, timeout: float = 5.0):
        """Initialize IPMI reader

        Args:
            sensor_names: Sensors to average
            timeout: Maximum seconds to wait for each ipmitool call
        """
        if sensor_names is None:
            sensor_names = DEFAULT_IPMI_SENSORS
        self.sensor_names: List[str] = list(sensor_names)
        if not self.sensor_names:
            raise ValueError("Must provide at least one sensor name")
        self.timeout = timeout

    @staticmethod
    def parse_sensor_reading(output: str) -> float:
        """Extract the reading from ``ipmitool sensor get`` output

        Raises:
            SensorError: If no parsable reading is present
        """
        for line in output.splitlines():
            if "Sensor Reading" not in line:
                continue
            parts = line.split(":", 1)
            if len(parts) < 2:
                continue
            value_parts = parts[1].split()
            if not value_parts:
                continue
            try:
                return float(value_parts[0])
            except ValueError as e:
                raise SensorError(f"Could not parse sensor reading: {parts[1].strip()}") from e
        raise SensorError("Sensor reading not found")

    def read_sensor(self, name: str) -> float:
        """Read a single named sensor

        Raises:
            SensorError: If ipmitool fails or reports no reading
        """
        try:
            result = subprocess.run(
                ["ipmitool", "sensor", "get", name],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise SensorError("ipmitool is not installed") from e
        except subprocess.CalledProcessError as e:
            raise SensorError(f"ipmitool failed for {name}: {(e.stderr or '').strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise SensorError(f"ipmitool timed out reading {name}") from e

        try:
            value = self.parse_sensor_reading(result.stdout)
        except SensorError as e:
            raise SensorError(f"{name}: {e}") from e
        logger.debug(f"Got temperature: {value}°C from {name}")
        return value

    def read_temperature(self) -> float:
        readings = [self.read_sensor(name) for name in self.sensor_names]
        return sum(readings) / len(readings)


class CombinedTemperatureReader(TemperatureSource):
    """Reads the BMC sensors, falling back to the thermal zone"""

    def __init__(self, primary: TemperatureSource, fallback: TemperatureSource):
        self.primary = primary
        self.fallback = fallback

    def read_temperature(self) -> float:
        try:
            return self.primary.read_temperature()
        except SensorError as e:
            logger.debug(f"Primary temperature source failed, using fallback: {e}")

        try:
            return self.fallback.read_temperature()
        except SensorError as e:
            raise SensorError(f"All temperature sources failed: {e}") from e
