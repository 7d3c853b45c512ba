"""
Fan Actuator Module

This module delivers fan speed percentages to the microcontroller driving
the fan, either over a USB serial link or as an HTTP POST.
"""

import logging
import os
import termios
import threading
from typing import Optional

import requests
import serial

from ..errors import ActuatorConnectionError, ActuatorWriteError

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_DIR = "/dev"
DEFAULT_DEVICE_PATTERN = "ttyUSB"
DEFAULT_BAUD_RATE = 115200  # Must match Serial.begin() on the board


def validate_speed(speed: int) -> int:
    """Check a speed percentage before it goes on the wire

    Raises:
        ValueError: If speed is not an integer in 0-100
    """
    if isinstance(speed, bool) or not isinstance(speed, int):
        raise ValueError(f"Invalid fan speed {speed!r}, must be an integer")
    if not 0 <= speed <= 100:
        raise ValueError(f"Invalid fan speed {speed}%, must be 0-100")
    return speed


class Actuator:
    """Base class for fan speed sinks"""

    def connect(self) -> None:
        """Make sure the transport is ready

        Raises:
            ActuatorConnectionError: If the actuator cannot be reached
        """
        pass

    def send(self, speed: int) -> None:
        """Send a fan speed percentage

        Raises:
            ActuatorConnectionError: If the actuator cannot be reached
            ActuatorWriteError: If the speed could not be delivered
        """
        raise NotImplementedError

    def close(self) -> None:
        pass


class SerialActuator(Actuator):
    """Writes speeds as newline-terminated decimals to a USB serial device.

    The device is found by scanning ``device_dir`` in name order for the
    first entry containing ``device_pattern``. An open port is reused until
    a write fails, after which the next send rescans and reopens.
    """

    def __init__(self, device_dir: str = DEFAULT_DEVICE_DIR,
                 device_pattern: str = DEFAULT_DEVICE_PATTERN,
                 baud_rate: int = DEFAULT_BAUD_RATE, timeout: float = 1.0):
        """Initialize serial actuator

        Args:
            device_dir: Directory holding device nodes
            device_pattern: Substring identifying the board's device name
            baud_rate: Serial baud rate
            timeout: Write timeout in seconds
        """
        self.device_dir = device_dir
        self.device_pattern = device_pattern
        self.baud_rate = baud_rate
        self.timeout = timeout
        self._port: Optional[serial.Serial] = None
        self._lock = threading.Lock()

    def find_device(self) -> str:
        """Find the first matching serial device

        Returns:
            Device path

        Raises:
            ActuatorConnectionError: If no device matches
        """
        try:
            names = sorted(os.listdir(self.device_dir))
        except OSError as e:
            raise ActuatorConnectionError(f"Cannot list {self.device_dir}: {e}") from e

        for name in names:
            path = os.path.join(self.device_dir, name)
            if os.path.isdir(path):
                continue
            if self.device_pattern in name:
                return path
        raise ActuatorConnectionError(
            f"No {self.device_pattern} device found in {self.device_dir}"
        )

    def _open(self) -> serial.Serial:
        if self._port is not None and self._port.is_open:
            return self._port

        path = self.find_device()
        try:
            self._port = serial.Serial(
                path,
                self.baud_rate,
                timeout=self.timeout,
                write_timeout=self.timeout
            )
        except serial.SerialException as e:
            self._port = None
            raise ActuatorConnectionError(f"Cannot open serial port {path}: {e}") from e
        logger.info(f"Connected to fan controller on {path}")
        return self._port

    def _drop_port(self) -> None:
        if self._port is not None:
            try:
                self._port.close()
            except (serial.SerialException, OSError, termios.error) as e:
                logger.warning(f"Error closing serial port: {e}")
        self._port = None

    def connect(self) -> None:
        with self._lock:
            self._open()

    def send(self, speed: int) -> None:
        payload = f"{validate_speed(speed)}\n".encode("ascii")
        with self._lock:
            port = self._open()
            try:
                port.write(payload)
                port.flush()
            except (serial.SerialException, OSError, termios.error) as e:
                self._drop_port()
                raise ActuatorWriteError(f"Serial error sending speed {speed}%: {e}") from e
        logger.debug(f"Sent {speed}% over serial")

    def close(self) -> None:
        with self._lock:
            self._drop_port()


class HTTPActuator(Actuator):
    """POSTs speeds as plain text to the board's HTTP endpoint"""

    def __init__(self, url: str, timeout: float = 2.0, session: Optional[requests.Session] = None):
        """Initialize HTTP actuator

        Args:
            url: Endpoint accepting the speed
            timeout: Request timeout in seconds
            session: Optional requests session to reuse
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, speed: int) -> None:
        body = str(validate_speed(speed))
        try:
            response = self.session.post(
                self.url,
                data=body,
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ActuatorConnectionError(f"Cannot reach fan controller at {self.url}: {e}") from e
        except requests.RequestException as e:
            raise ActuatorWriteError(f"Request to {self.url} failed: {e}") from e

        if not response.ok:
            raise ActuatorWriteError(
                f"Fan controller rejected speed {speed}%: HTTP {response.status_code}"
            )
        logger.debug(f"Posted {speed}% to {self.url}")

    def close(self) -> None:
        self.session.close()
