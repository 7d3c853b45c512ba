"""
Fan Delivery Manager Module

This module runs the loop that keeps the fan speed in line with the system
temperature and the current curve.
"""

import logging
import threading
from typing import Optional

from ..errors import ActuatorError, SensorError
from ..hardware import Actuator, TemperatureSource
from .curve import calculate_fan_speed, to_actuator_speed
from .state import CurveState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


class DeliveryManager:
    """Periodically pushes the curve's speed for the current temperature to
    the fan.

    Every failure within a cycle is logged and the cycle skipped. The next
    tick starts over, reconnecting the actuator if needed.
    """

    def __init__(self, state: CurveState, sensor: TemperatureSource,
                 actuator: Actuator, interval: float = DEFAULT_INTERVAL):
        """Initialize delivery manager

        Args:
            state: Shared curve configuration
            sensor: Temperature source
            actuator: Fan speed sink
            interval: Seconds between deliveries
        """
        if interval <= 0:
            raise ValueError(f"Invalid interval {interval}s, must be positive")

        self.state = state
        self.sensor = sensor
        self.actuator = actuator
        self.interval = interval

        # Last speed delivered, None until the first successful send
        self.last_speed: Optional[int] = None
        self.last_temperature: Optional[float] = None

        # Control loop state
        self._running = False
        self._stop_event = threading.Event()
        self._control_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        # At most one out-of-band delivery in flight
        self._trigger_slot = threading.Semaphore(1)

    def compute_speed(self, temperature: float) -> float:
        """Evaluate the current curve at a temperature"""
        return calculate_fan_speed(temperature, self.state.get())

    def current_speed(self) -> int:
        """Read the temperature and return the speed the fan should run at

        Raises:
            SensorError: If the temperature cannot be read
        """
        temperature = self.sensor.read_temperature()
        return to_actuator_speed(self.compute_speed(temperature))

    def deliver_once(self) -> bool:
        """Run one read, evaluate and send cycle

        Returns:
            True if a speed reached the actuator
        """
        config = self.state.get()

        try:
            temperature = self.sensor.read_temperature()
        except SensorError as e:
            logger.error(f"Skipping delivery, temperature read failed: {e}")
            return False

        speed = calculate_fan_speed(temperature, config)
        target = to_actuator_speed(speed)

        try:
            self.actuator.connect()
        except ActuatorError as e:
            logger.error(f"Skipping delivery, could not connect to fan controller: {e}")
            return False

        try:
            self.actuator.send(target)
        except ActuatorError as e:
            logger.error(f"Failed to send fan speed {target}%: {e}")
            return False

        self.last_temperature = temperature
        self.last_speed = target
        logger.info(f"Fan speed set to {target}% at {temperature:.1f}°C")
        logger.debug(f"{config.mode.value} curve: {temperature}°C -> {speed}%")
        return True

    def trigger(self) -> bool:
        """Start one delivery in the background without waiting for it

        Best effort: the attempt is not coordinated with the periodic loop
        and is dropped if another triggered delivery is still running.

        Returns:
            True if a delivery was started
        """
        if not self._trigger_slot.acquire(blocking=False):
            logger.debug("Delivery already in progress, dropping trigger")
            return False

        def run():
            try:
                self.deliver_once()
            except Exception as e:
                logger.error(f"Triggered delivery error: {e}")
            finally:
                self._trigger_slot.release()

        thread = threading.Thread(target=run, name="fancurve-trigger", daemon=True)
        thread.start()
        return True

    def _control_loop(self) -> None:
        """Main control loop"""
        # The wait is the only suspension point; it returns early on stop()
        while not self._stop_event.wait(self.interval):
            try:
                self.deliver_once()
            except Exception as e:
                logger.error(f"Control loop error: {e}")

    def start(self) -> None:
        """Start the delivery loop"""
        with self._lock:
            if self._running:
                return

            self._stop_event.clear()
            self._running = True
            self._control_thread = threading.Thread(
                target=self._control_loop,
                name="fancurve-delivery"
            )
            self._control_thread.daemon = True
            self._control_thread.start()

            logger.info(f"Delivery loop started, interval {self.interval}s")

    def stop(self) -> None:
        """Stop the delivery loop"""
        with self._lock:
            if not self._running:
                return

            self._running = False
            self._stop_event.set()
            if self._control_thread:
                self._control_thread.join()
                self._control_thread = None

            logger.info("Delivery loop stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_status(self):
        """Get current delivery status

        Returns:
            Dictionary with loop state and the last delivered values
        """
        config = self.state.get()
        return {
            "running": self._running,
            "interval": self.interval,
            "mode": config.mode.value,
            "points": len(config.points),
            "last_temperature": self.last_temperature,
            "last_speed": self.last_speed
        }
